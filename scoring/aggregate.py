"""
Filter, merge and rank helpers used by scoring.engine.
"""
import math
from typing import Dict, Iterable, List, Mapping
from normalize.models import ItemKey, ReviewState, WorkItem


def filter_open_items(items: Iterable[WorkItem]) -> List[WorkItem]:
    """Keep non-draft items whose target is still open, preserving order."""
    return [item for item in items if not item.draft and item.review_state is ReviewState.OPEN]


def unique_by_key(items: Iterable[WorkItem]) -> List[WorkItem]:
    """GitLab can hold several todos for one target (mentioned + review requested); keep the first."""
    seen = set()
    unique = []
    for item in items:
        if item.key not in seen:
            seen.add(item.key)
            unique.append(item)
    return unique


def merge_contributions(*maps: Mapping[ItemKey, float]) -> Dict[ItemKey, float]:
    """
    Sum sparse contribution maps key by key. Missing keys count as zero.
    fsum is exactly rounded, so totals are bit-identical whatever order the maps come in.
    """
    parts: Dict[ItemKey, List[float]] = {}
    for m in maps:
        for key, value in m.items():
            parts.setdefault(key, []).append(float(value))
    return {key: math.fsum(values) for key, values in parts.items()}


def apply_scores(items: Iterable[WorkItem], totals: Mapping[ItemKey, float]) -> None:
    for item in items:
        item.score = totals.get(item.key, 0.0)


def rank_items(items: Iterable[WorkItem]) -> List[WorkItem]:
    """Highest score first. sorted() is stable, so ties keep their incoming order."""
    return sorted(items, key=lambda item: item.score, reverse=True)
