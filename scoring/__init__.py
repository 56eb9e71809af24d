"""
Scoring package: expose the engine entry points.
"""

from .engine import ScoringEngine, ScoringResult, rank_todos

__all__ = ["ScoringEngine", "ScoringResult", "rank_todos"]
