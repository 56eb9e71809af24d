"""
Unit tests for the individual scoring signals.
"""
import unittest
from datetime import datetime, timedelta, timezone
from normalize.models import WorkItem, ItemKey, ReviewState, CommitRecord, ChangedFile
from scoring.signals import (
    urgency_scores,
    age_scores,
    age_score,
    mention_score,
    mention_scores,
    diff_scores,
    diff_score,
    commit_scores,
    authorship_ratio,
)
from storage.cache import ProjectMemo

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_item(project_id=1, iid=1, body='', title='', created_at=None, target_type='MergeRequest'):
    return WorkItem(
        key=ItemKey(project_id, iid),
        url=f"https://gitlab.example.com/p{project_id}/-/merge_requests/{iid}",
        body=body,
        title=title,
        created_at=created_at or NOW,
        review_state=ReviewState.OPEN,
        draft=False,
        target_type=target_type,
    )


class MockSource:
    def __init__(self, commits=None, diffs=None):
        self.commits = commits or {}
        self.diffs = diffs or {}
        self.commit_calls = []
        self.diff_calls = []

    def fetch_todos(self):
        return []

    def fetch_commits(self, project_id, since):
        self.commit_calls.append((project_id, since))
        return [CommitRecord(e) for e in self.commits.get(project_id, [])]

    def fetch_diffs(self, project_id, iid):
        self.diff_calls.append((project_id, iid))
        return [ChangedFile(p) for p in self.diffs.get((project_id, iid), [])]


class TestMentionSignal(unittest.TestCase):
    def test_user_order(self):
        first = "@hiromu @tarou @jiro @saburo @shiro @gorou @rokuro @nanaro @hatiro @kuro"
        fourth = "@tarou @jiro @saburo @hiromu @shiro @gorou @rokuro @nanaro @hatiro @kuro"
        self.assertAlmostEqual(mention_score(first, 'hiromu'), 35)
        self.assertAlmostEqual(mention_score(fourth, 'hiromu'), 26)

    def test_users_num(self):
        cases = [
            ("@tarou @jiro @saburo @hiromu @shiro @gorou @rokuro @nanaro @hatiro @kuro", 26),
            ("@tarou @jiro @saburo @hiromu @shiro @gorou @rokuro @nanaro", 25),
            ("@saburo @hiromu @shiro @gorou", 35),
            ("@hiromu", 80),
        ]
        for body, want in cases:
            with self.subTest(body=body):
                self.assertAlmostEqual(mention_score(body, 'hiromu'), want)

    def test_short_handles(self):
        self.assertAlmostEqual(mention_score("@a @b @c @d", 'b'), 35)

    def test_last_occurrence_is_used(self):
        # "@hiromu" appears at positions 0 and 2 of 3 -> order 2
        body = "@hiromu @tarou @hiromu"
        self.assertAlmostEqual(mention_score(body, 'hiromu'), 30 * (1 - 2 / 3) + 50 / 3)

    def test_absent_mention_has_no_entry(self):
        items = [make_item(iid=1, body="@tarou please look"), make_item(iid=2, body="no mentions at all")]
        self.assertEqual(mention_scores(items, 'hiromu'), {})

    def test_longer_handle_is_not_a_match(self):
        self.assertIsNone(mention_score("@hiromux @hiromu-bot @hiromu.tanaka", 'hiromu'))

    def test_case_sensitive(self):
        self.assertIsNone(mention_score("@Hiromu", 'hiromu'))

    def test_trailing_punctuation_still_matches(self):
        self.assertAlmostEqual(mention_score("thanks @hiromu.", 'hiromu'), 80)
        self.assertAlmostEqual(mention_score("(cc @hiromu)", 'hiromu'), 80)

    def test_email_address_is_not_a_mention(self):
        self.assertIsNone(mention_score("mail ops@hiromu.dev", 'hiromu'))

    def test_raw_at_glyphs_are_counted(self):
        # the '@' in the email address is counted in both order and total: order=1, total=2
        body = "contact ops@example.com then @hiromu"
        self.assertAlmostEqual(mention_score(body, 'hiromu'), 30 * (1 - 1 / 2) + 50 / 2)


class TestUrgencySignal(unittest.TestCase):
    def test_flat_score_not_cumulative(self):
        items = [
            make_item(iid=1, body="URGENT URGENT EMERGENCY", title="緊急 重要"),
            make_item(iid=2, title="急ぎ: fix deploy"),
            make_item(iid=3, body="whenever you have time"),
        ]
        scores = urgency_scores(items)
        self.assertEqual(scores, {ItemKey(1, 1): 1000.0, ItemKey(1, 2): 1000.0})

    def test_custom_keywords(self):
        items = [make_item(iid=1, body="hotfix needed")]
        self.assertEqual(urgency_scores(items, ("hotfix",)), {ItemKey(1, 1): 1000.0})
        self.assertEqual(urgency_scores(items, ("URGENT",)), {})


class TestAgeSignal(unittest.TestCase):
    def test_exponential_in_hours(self):
        self.assertAlmostEqual(age_score(NOW - timedelta(hours=2), NOW), 7.38905609893065)
        self.assertAlmostEqual(age_score(NOW, NOW), 1.0)

    def test_clamped_for_old_items(self):
        for delta in (timedelta(hours=6), timedelta(days=3), timedelta(days=3650)):
            with self.subTest(delta=delta):
                self.assertEqual(age_score(NOW - delta, NOW), 300.0)

    def test_future_items_score_below_one(self):
        self.assertLess(age_score(NOW + timedelta(hours=1), NOW), 1.0)

    def test_every_item_gets_an_entry(self):
        items = [make_item(iid=i, created_at=NOW - timedelta(hours=i)) for i in range(1, 4)]
        scores = age_scores(items, NOW)
        self.assertEqual(len(scores), 3)
        self.assertTrue(all(0 < v <= 300 for v in scores.values()))


class TestDiffSignal(unittest.TestCase):
    def test_ten_points_per_match(self):
        files = [ChangedFile('main.go'), ChangedFile('infra/vpc.tf'), ChangedFile('README.md')]
        self.assertEqual(diff_score(files, ('.go', '.tf', '.py')), 20)

    def test_overlapping_extensions_add_independently(self):
        self.assertEqual(diff_score([ChangedFile('tool.py')], ('.py', 'y')), 20)

    def test_clamped_at_fifty(self):
        files = [ChangedFile(f"pkg/f{i}.go") for i in range(12)]
        self.assertEqual(diff_score(files, ('.go',)), 50)

    def test_fetches_per_merge_request_and_skips_issues(self):
        source = MockSource(diffs={(1, 1): ['a.py'], (1, 2): []})
        items = [make_item(iid=1), make_item(iid=2), make_item(iid=3, target_type='Issue')]
        scores = diff_scores(items, source, ('.py',))
        self.assertEqual(scores, {ItemKey(1, 1): 10.0, ItemKey(1, 2): 0.0})
        self.assertEqual(source.diff_calls, [(1, 1), (1, 2)])


class TestCommitSignal(unittest.TestCase):
    def test_ratio(self):
        emails = ['hiromu@example.com', 'tarou@example.com', 'hiromu.k@example.com', 'ci@example.com']
        self.assertEqual(authorship_ratio(emails, 'hiromu'), 50.0)

    def test_zero_commit_window_scores_zero(self):
        self.assertEqual(authorship_ratio([], 'hiromu'), 0.0)
        source = MockSource(commits={7: []})
        scores = commit_scores([make_item(project_id=7)], source, 'hiromu', since=NOW)
        self.assertEqual(scores, {ItemKey(7, 1): 0.0})

    def test_memoized_per_project(self):
        source = MockSource(commits={1: ['hiromu@x', 'a@x'], 2: ['b@x']})
        items = [make_item(project_id=1 + (i % 2), iid=i) for i in range(10)]
        memo = ProjectMemo()
        scores = commit_scores(items, source, 'hiromu', memo=memo, since=NOW)
        self.assertEqual(len(source.commit_calls), 2)
        self.assertEqual(sorted(p for p, _ in source.commit_calls), [1, 2])
        self.assertEqual(scores[ItemKey(1, 0)], 50.0)
        self.assertEqual(scores[ItemKey(2, 1)], 0.0)
        self.assertEqual(memo.stats(), {'count': 2, 'hits': 8, 'misses': 2})

    def test_items_without_project_are_skipped(self):
        source = MockSource(commits={1: ['hiromu@x']})
        epic = make_item(project_id=0, iid=2, target_type='Epic')
        scores = commit_scores([epic, make_item()], source, 'hiromu', since=NOW)
        self.assertEqual(scores, {ItemKey(1, 1): 100.0})
        self.assertEqual([p for p, _ in source.commit_calls], [1])

    def test_since_is_passed_through(self):
        source = MockSource(commits={1: []})
        since = NOW - timedelta(days=365)
        commit_scores([make_item()], source, 'hiromu', since=since)
        self.assertEqual(source.commit_calls, [(1, since)])


if __name__ == '__main__':
    unittest.main()
