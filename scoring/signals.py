"""
Signal extractors.
Each extractor maps a sequence of WorkItems to a sparse contribution map keyed by ItemKey.
An item missing from a map contributes zero for that signal.
"""
import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar
from ingest.gitlab import DataSource
from normalize.models import ItemKey, WorkItem, ChangedFile
from storage.cache import ProjectMemo
from .utils import URGENT_KEYWORDS, DEFAULT_PRIORITY_EXTENSIONS, DEFAULT_LOOKBACK_DAYS

logger = logging.getLogger(__name__)

Contributions = Dict[ItemKey, float]
T = TypeVar('T')
R = TypeVar('R')
# (function, inputs) -> results in input order; see scoring.engine for the pooled implementation
MapFn = Callable[[Callable[[T], R], Sequence[T]], List[R]]

URGENT_SCORE = 1000.0
AGE_SCORE_CAP = 300.0
MENTION_ORDER_WEIGHT = 30.0
MENTION_EXCLUSIVITY_WEIGHT = 50.0
DIFF_POINTS_PER_MATCH = 10
DIFF_SCORE_CAP = 50
COMMIT_RATIO_SCALE = 100.0


def sequential_map(fn, inputs):
    return [fn(x) for x in inputs]


def urgency_scores(items: Iterable[WorkItem], keywords: Sequence[str] = URGENT_KEYWORDS) -> Contributions:
    """Flat URGENT_SCORE for any item whose body or title contains an urgency keyword."""
    scores: Contributions = {}
    for item in items:
        if any(k in item.body or k in item.title for k in keywords):
            scores[item.key] = URGENT_SCORE
    return scores


def age_score(created_at: datetime, now: datetime) -> float:
    hours = (now - created_at).total_seconds() / 3600.0
    # exp() overflows long before the cap matters, so clamp the exponent instead of the result
    if hours >= math.log(AGE_SCORE_CAP):
        return AGE_SCORE_CAP
    return math.exp(hours)


def age_scores(items: Iterable[WorkItem], now: Optional[datetime] = None) -> Contributions:
    """exp(hours since creation), capped at AGE_SCORE_CAP. Relative to wall-clock now unless given."""
    now = now or datetime.now(timezone.utc)
    return {item.key: age_score(item.created_at, now) for item in items}


def _mention_pattern(username: str) -> re.Pattern:
    # not inside a word (e.g. an email), and not a prefix of a longer handle ("@bob" vs "@bobby", "@bob.smith")
    return re.compile(r'(?<!\w)@' + re.escape(username) + r'(?![\w-]|\.\w)')


def mention_score(body: str, username: str) -> Optional[float]:
    """Score the last exact @username mention in body, or None when there is none.

    order and total count raw '@' glyphs, not parsed mentions, so an email address elsewhere in the body
    shifts both. That approximation is deliberate and pinned by tests.
    """
    matches = list(_mention_pattern(username).finditer(body))
    if not matches:
        return None
    pos = matches[-1].start()
    order = body.count('@', 0, pos)
    total = body.count('@')
    return MENTION_ORDER_WEIGHT * (1 - order / total) + MENTION_EXCLUSIVITY_WEIGHT / total


def mention_scores(items: Iterable[WorkItem], username: str) -> Contributions:
    scores: Contributions = {}
    for item in items:
        score = mention_score(item.body, username)
        if score is not None:
            scores[item.key] = score
    return scores


def diff_score(files: Iterable[ChangedFile], extensions: Sequence[str]) -> int:
    score = 0
    for f in files:
        for ext in extensions:
            if f.new_path.endswith(ext):
                score += DIFF_POINTS_PER_MATCH
    return min(score, DIFF_SCORE_CAP)


def diff_scores(
    items: Iterable[WorkItem],
    source: DataSource,
    extensions: Sequence[str] = DEFAULT_PRIORITY_EXTENSIONS,
    map_fn: MapFn = sequential_map,
) -> Contributions:
    """Fetch each merge request's changeset and score it by priority file extensions.

    Only merge requests have a changeset; other target types are skipped without a fetch.
    """
    mrs = [item for item in items if item.target_type == 'MergeRequest']

    def _score(item: WorkItem) -> float:
        return float(diff_score(source.fetch_diffs(item.project_id, item.iid), extensions))

    results = map_fn(_score, mrs)
    logger.debug("diff signal evaluated %d merge request(s)", len(mrs))
    return {item.key: score for item, score in zip(mrs, results)}


def authorship_ratio(emails: Sequence[str], username: str) -> float:
    """Percentage of commits whose committer email contains username. An empty window scores 0."""
    if not emails:
        return 0.0
    mine = sum(1 for e in emails if username in e)
    return COMMIT_RATIO_SCALE * mine / len(emails)


def commit_scores(
    items: Iterable[WorkItem],
    source: DataSource,
    username: str,
    memo: Optional[ProjectMemo] = None,
    since: Optional[datetime] = None,
    map_fn: MapFn = sequential_map,
) -> Contributions:
    """Score each item by the user's share of commits in its project over the lookback window.

    The ratio is computed once per project id; every item of that project reuses it.
    Group-level targets (epics) have no project and are skipped without a fetch.
    """
    items = [item for item in items if item.project_id]
    memo = memo if memo is not None else ProjectMemo()
    since = since or datetime.now(timezone.utc) - timedelta(days=DEFAULT_LOOKBACK_DAYS)

    def _ratio(project_id: int) -> float:
        def _compute() -> float:
            commits = source.fetch_commits(project_id, since)
            ratio = authorship_ratio([c.committer_email for c in commits], username)
            logger.debug("project %s: %d commit(s) since %s, ratio %.2f", project_id, len(commits), since.isoformat(), ratio)
            return ratio
        return memo.get_or_compute(project_id, _compute)

    ratios = map_fn(lambda item: _ratio(item.project_id), items)
    return {item.key: ratio for item, ratio in zip(items, ratios)}
