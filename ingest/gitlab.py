"""
GitLab ingestion client used by the scoring engine.
Fetches pending To-Dos, project commit history and merge request diffs; every failure surfaces as FetchError.
"""
import logging
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional, Protocol
from errors import FetchError
from normalize.models import WorkItem, CommitRecord, ChangedFile
from normalize.util import normalize_todo, normalize_commit, normalize_diff
from storage.retry import perform_request_with_retries

logger = logging.getLogger(__name__)


class DataSource(Protocol):
    """The three capabilities the scoring engine needs from a backend."""

    def fetch_todos(self) -> List[WorkItem]: ...

    def fetch_commits(self, project_id: int, since: datetime) -> List[CommitRecord]: ...

    def fetch_diffs(self, project_id: int, iid: int) -> List[ChangedFile]: ...


def format_since(since: datetime) -> str:
    """Render a datetime as the UTC 'YYYY-MM-DDTHH:MM:SSZ' form GitLab expects for ?since=."""
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return since.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


class GitLabClient:
    """Simple GitLab REST v4 client authenticated with a pre-formed bearer token."""

    def __init__(self, host: str, token: str, per_page: int = 100):
        self.host = host
        self.token = token
        self.per_page = per_page
        if host.startswith('http://') or host.startswith('https://'):
            self.base_url = host.rstrip('/') + '/api/v4'
        else:
            self.base_url = f"https://{host.rstrip('/')}/api/v4"
        self.headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
        }

    def _get_page(self, url: str, params: Dict[str, Any], what: str) -> List[Dict[str, Any]]:
        res = perform_request_with_retries(url, headers=self.headers, params=params)
        status = res.get('status', 0)
        data = res.get('response')
        if status == 0:
            raise FetchError(f"failed to get {what} from GitLab API: {data}")
        if status != 200:
            raise FetchError(f"unexpected status {status} for {what} from GitLab API: {data}")
        if not isinstance(data, list):
            raise FetchError(f"failed to parse {what} from GitLab API: expected a JSON array")
        return data

    def _get_all(self, path: str, what: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        url = f"{self.base_url}{path}"
        page = 1
        items: List[Dict[str, Any]] = []
        while True:
            page_params = dict(params or {})
            page_params.update({"page": page, "per_page": self.per_page})
            data = self._get_page(url, page_params, what)
            items.extend(data)
            if len(data) < self.per_page:
                break
            page += 1
        logger.debug("fetched %d %s in %d page(s)", len(items), what, page)
        return items

    def fetch_todos(self) -> List[WorkItem]:
        raw = self._get_all("/todos", "todos")
        try:
            return [normalize_todo(t) for t in raw]
        except (TypeError, ValueError, AttributeError) as ex:
            raise FetchError(f"failed to parse todos from GitLab API: {ex}") from ex

    def fetch_commits(self, project_id: int, since: datetime) -> List[CommitRecord]:
        what = f"commits in project {project_id}"
        raw = self._get_all(f"/projects/{project_id}/repository/commits", what, {"since": format_since(since)})
        try:
            return [normalize_commit(c) for c in raw]
        except (TypeError, ValueError, AttributeError) as ex:
            raise FetchError(f"failed to parse {what} from GitLab API: {ex}") from ex

    def fetch_diffs(self, project_id: int, iid: int) -> List[ChangedFile]:
        what = f"diffs of merge request !{iid} in project {project_id}"
        raw = self._get_all(f"/projects/{project_id}/merge_requests/{iid}/diffs", what)
        try:
            return [normalize_diff(d) for d in raw]
        except (TypeError, ValueError, AttributeError) as ex:
            raise FetchError(f"failed to parse {what} from GitLab API: {ex}") from ex
