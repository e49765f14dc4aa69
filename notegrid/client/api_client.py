from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

from ..errors import TransportError
from ..models import Link, LinkUpdate, Task, TaskUpdate, UserData
from .http_client import build_base_url, request_json, unwrap_envelope


class ApiClient:
    """Typed calls against one NoteGrid API for one identity."""

    def __init__(self, base_url: str, identity: str | None = None, timeout_s: float = 5.0) -> None:
        self.base_url = build_base_url(base_url)
        self.identity = identity
        self.timeout_s = timeout_s

    def _headers(self, auth: bool) -> dict[str, str]:
        if not auth or not self.identity:
            return {}
        return {"Authorization": f"Bearer {self.identity}"}

    def _call(self, method: str, path: str, body: Any = None, *, auth: bool = True) -> Any:
        status, payload = request_json(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(auth),
            body=body,
            timeout_s=self.timeout_s,
        )
        return unwrap_envelope(status, payload, label=f"{method} {path}")

    def health(self) -> dict[str, Any]:
        data = self._call("GET", "/api/health", auth=False)
        return data if isinstance(data, dict) else {}

    def check_exists(self, identity: str) -> bool:
        data = self._call("GET", f"/api/exists/{quote(identity, safe='')}", auth=False)
        return bool(isinstance(data, dict) and data.get("exists"))

    def register_identity(self, identity: str) -> UserData:
        data = self._call("POST", "/api/register", {"uuid": identity}, auth=False)
        return UserData.from_dict(data if isinstance(data, dict) else {})

    def delete_account(self) -> None:
        self._call("DELETE", "/api/account")

    def fetch_user_data(self) -> UserData:
        data = self._call("GET", "/api/data")
        if not isinstance(data, dict):
            raise TransportError("GET /api/data: missing document")
        return UserData.from_dict(data)

    def save_user_data(self, data: UserData) -> UserData:
        echoed = self._call("PUT", "/api/data", data.to_dict())
        return UserData.from_dict(echoed) if isinstance(echoed, dict) else data

    def fetch_tasks(self) -> list[Task]:
        data = self._call("GET", "/api/tasks")
        return [Task.from_dict(item) for item in data or [] if isinstance(item, dict)]

    def create_task(self, task: Task) -> Task:
        data = self._call("POST", "/api/tasks", task.to_dict())
        return Task.from_dict(data) if isinstance(data, dict) else task

    def update_task(self, task_id: str, update: TaskUpdate) -> Task | None:
        data = self._call("PUT", f"/api/tasks/{quote(task_id, safe='')}", update.to_dict())
        return Task.from_dict(data) if isinstance(data, dict) else None

    def delete_task(self, task_id: str) -> None:
        self._call("DELETE", f"/api/tasks/{quote(task_id, safe='')}")

    def reorder_tasks(self, task_ids: Sequence[str]) -> None:
        self._call("PUT", "/api/tasks/reorder", {"taskIds": list(task_ids)})

    def fetch_links(self) -> list[Link]:
        data = self._call("GET", "/api/links")
        return [Link.from_dict(item) for item in data or [] if isinstance(item, dict)]

    def create_link(self, link: Link) -> Link:
        data = self._call("POST", "/api/links", link.to_dict())
        return Link.from_dict(data) if isinstance(data, dict) else link

    def update_link(self, link_id: str, update: LinkUpdate) -> Link | None:
        data = self._call("PUT", f"/api/links/{quote(link_id, safe='')}", update.to_dict())
        return Link.from_dict(data) if isinstance(data, dict) else None

    def delete_link(self, link_id: str) -> None:
        self._call("DELETE", f"/api/links/{quote(link_id, safe='')}")

    def reorder_links(self, link_ids: Sequence[str]) -> None:
        self._call("PUT", "/api/links/reorder", {"linkIds": list(link_ids)})
