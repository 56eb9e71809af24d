"""
Scoring engine: filter -> signals -> merge -> rank.
Network-bound signals (diff, commit) fan out over a bounded thread pool; everything else runs in the caller's thread.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from ingest.gitlab import DataSource
from normalize.models import WorkItem
from storage.cache import ProjectMemo
from .aggregate import unique_by_key, filter_open_items, merge_contributions, apply_scores, rank_items
from .signals import Contributions, MapFn, urgency_scores, mention_scores, age_scores, diff_scores, commit_scores, sequential_map
from .utils import ScoringSettings

logger = logging.getLogger(__name__)

SIGNAL_NAMES = ('urgency', 'mention', 'age', 'diff', 'commit')


class ScoringResult:
    """
    Ranked items plus the per-signal contribution maps that produced their scores (debug view).
    """
    def __init__(self, items: List[WorkItem], contributions: Dict[str, Contributions], memo_stats: Optional[Dict[str, int]] = None):
        self.items = items
        self.contributions = contributions
        self.memo_stats = memo_stats or {}

    def breakdown(self, item: WorkItem) -> Dict[str, float]:
        """Per-signal contribution for one item; signals that skipped it report 0."""
        return {name: self.contributions[name].get(item.key, 0.0) for name in self.contributions}


def _pooled_map(executor: ThreadPoolExecutor) -> MapFn:
    def _map(fn, inputs):
        futures = [executor.submit(fn, x) for x in inputs]
        try:
            return [f.result() for f in futures]
        except BaseException:
            # fail fast: drop whatever has not started yet
            for f in futures:
                f.cancel()
            raise
    return _map


class ScoringEngine:
    def __init__(self, source: DataSource, settings: ScoringSettings):
        self.source = source
        self.settings = settings

    def _network_signals(self, items: List[WorkItem], memo: ProjectMemo, since: datetime, map_fn: MapFn):
        diff = diff_scores(items, self.source, self.settings.priority_extensions, map_fn=map_fn)
        commit = commit_scores(items, self.source, self.settings.username, memo=memo, since=since, map_fn=map_fn)
        return diff, commit

    def run(self, items: List[WorkItem], now: Optional[datetime] = None) -> ScoringResult:
        """Score and rank items. Any FetchError raised by the data source aborts the whole run."""
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=self.settings.lookback_days)
        candidates = unique_by_key(filter_open_items(items))
        logger.debug("%d of %d item(s) are open and not drafts", len(candidates), len(items))

        contributions: Dict[str, Contributions] = {
            'urgency': urgency_scores(candidates, self.settings.urgent_keywords),
            'mention': mention_scores(candidates, self.settings.username),
            'age': age_scores(candidates, now),
        }

        memo = ProjectMemo()
        if self.settings.workers > 1 and candidates:
            with ThreadPoolExecutor(max_workers=self.settings.workers, thread_name_prefix='todo-rank') as executor:
                diff, commit = self._network_signals(candidates, memo, since, _pooled_map(executor))
        else:
            diff, commit = self._network_signals(candidates, memo, since, sequential_map)
        contributions['diff'] = diff
        contributions['commit'] = commit
        logger.debug("commit memo: %s", memo.stats())

        apply_scores(candidates, merge_contributions(*contributions.values()))
        return ScoringResult(rank_items(candidates), contributions, memo.stats())


def rank_todos(source: DataSource, settings: ScoringSettings, now: Optional[datetime] = None) -> ScoringResult:
    """Fetch the user's pending To-Dos and rank them."""
    todos = source.fetch_todos()
    logger.info("fetched %d todo(s)", len(todos))
    return ScoringEngine(source, settings).run(todos, now=now)
