"""
Normalization utility helpers.
Small helpers to turn raw GitLab API payloads into normalize.models entities.
"""
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from normalize.models import WorkItem, ItemKey, ReviewState, CommitRecord, ChangedFile


def parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """Parse a GitLab ISO 8601 timestamp into an aware UTC datetime.
    GitLab emits both '2024-01-02T03:04:05.000Z' and '+09:00' offsets; naive values are assumed UTC.
    """
    if not raw:
        return None
    value = raw.strip()
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_todo(raw: Dict[str, Any]) -> WorkItem:
    """Create a WorkItem from a raw /todos entry.
    Fields of the target (MR or issue) take precedence; the todo body is the comment/description that triggered it.
    """
    target = raw.get('target') or {}
    project = raw.get('project') or {}
    # group-level targets such as epics have no project; 0 marks that
    project_id = int(project.get('id') or target.get('project_id') or 0)
    iid = int(target.get('iid') or 0)
    target_type = raw.get('target_type') or 'MergeRequest'
    # draft is the current field name; older GitLab versions only send work_in_progress
    draft = bool(target.get('draft', target.get('work_in_progress', False)))
    created_at = parse_timestamp(raw.get('created_at')) or datetime.now(timezone.utc)
    return WorkItem(
        key=ItemKey(project_id, iid, target_type),
        url=raw.get('target_url') or target.get('web_url') or '',
        body=raw.get('body') or '',
        title=target.get('title') or '',
        created_at=created_at,
        review_state=ReviewState.from_raw(target.get('state')),
        draft=draft,
        project_path=project.get('path_with_namespace') or '',
        author=(target.get('author') or {}).get('username') or '',
    )


def normalize_commit(raw: Dict[str, Any]) -> CommitRecord:
    return CommitRecord(
        committer_email=raw.get('committer_email') or '',
        commit_id=raw.get('id') or '',
        created_at=parse_timestamp(raw.get('created_at')),
    )


def normalize_diff(raw: Dict[str, Any]) -> ChangedFile:
    return ChangedFile(new_path=raw.get('new_path') or '', old_path=raw.get('old_path') or '')
