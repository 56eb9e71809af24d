"""
Unified data models for normalized GitLab entities.
"""

from datetime import datetime
from enum import Enum
from typing import NamedTuple, Optional


class ItemKey(NamedTuple):
    """
    Identity of a work item. GitLab numbers issues and merge requests separately within a project,
    so the iid is only unique per (project, target type).
    """
    project_id: int
    iid: int
    target_type: str = 'MergeRequest'


class ReviewState(Enum):
    OPEN = 'opened'
    CLOSED = 'closed'
    MERGED = 'merged'
    LOCKED = 'locked'

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> 'ReviewState':
        """Map a GitLab target state to a ReviewState. Unknown values are treated as closed."""
        for state in cls:
            if state.value == (raw or '').lower():
                return state
        return cls.CLOSED


class WorkItem:
    """
    A pending To-Do entry requiring the user's attention.
    """
    def __init__(self, key: ItemKey, url: str, body: str, title: str, created_at: datetime, review_state: ReviewState, draft: bool, target_type: Optional[str] = None, project_path: str = '', author: str = ''):
        # the key always carries the target type so an issue and an MR sharing an iid stay distinct
        if target_type and target_type != key.target_type:
            key = key._replace(target_type=target_type)
        self.key = key
        self.url = url
        self.body = body
        self.title = title
        self.created_at = created_at
        self.review_state = review_state
        self.draft = draft
        self.project_path = project_path
        self.author = author
        # written only by scoring.aggregate.apply_scores
        self.score = 0.0

    @property
    def target_type(self) -> str:
        return self.key.target_type  # MergeRequest/Issue/Epic/...

    @property
    def project_id(self) -> int:
        return self.key.project_id

    @property
    def iid(self) -> int:
        return self.key.iid

    def __repr__(self):
        return f"WorkItem(key={self.key!r}, url={self.url!r}, score={self.score!r})"


class CommitRecord:
    """
    A commit in a project's lookback window. Only the committer identity is used for scoring.
    """
    def __init__(self, committer_email: str, commit_id: str = '', created_at: Optional[datetime] = None):
        self.committer_email = committer_email
        self.commit_id = commit_id
        self.created_at = created_at


class ChangedFile:
    """
    A file touched by a merge request changeset.
    """
    def __init__(self, new_path: str, old_path: str = ''):
        self.new_path = new_path
        self.old_path = old_path or new_path
