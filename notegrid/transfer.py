from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from .errors import ImportFormatError
from .models import Link, Task, UserData, coerce_ms, now_ms
from .utils import iso_from_ms

INVALID_JSON = "Invalid JSON format. Please check the file contents."
NOT_AN_OBJECT = "Invalid JSON: expected an object"
NOTHING_TO_IMPORT = "No valid tasks or links found in the file"


@dataclass
class ImportResult:
    success: bool
    error: str | None = None
    data: UserData | None = None

    @property
    def task_count(self) -> int:
        return len(self.data.tasks) if self.data else 0

    @property
    def link_count(self) -> int:
        return len(self.data.links) if self.data else 0


def _load_document(text: str) -> dict[str, Any]:
    try:
        raw = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ImportFormatError(INVALID_JSON) from exc
    if not isinstance(raw, dict):
        raise ImportFormatError(NOT_AN_OBJECT)
    return raw


def _coerce(raw: dict[str, Any], now: int) -> UserData:
    raw_tasks = raw.get("tasks") if isinstance(raw.get("tasks"), list) else []
    raw_links = raw.get("links") if isinstance(raw.get("links"), list) else []
    tasks = [Task.from_dict(item, now=now) for item in raw_tasks if isinstance(item, dict)]
    links = [
        link
        for link in (Link.from_dict(item, now=now) for item in raw_links if isinstance(item, dict))
        if link.url.strip()
    ]
    created_at = coerce_ms(raw.get("createdAt"), now)
    return UserData(tasks=tasks, links=links, created_at=created_at, updated_at=now)


def parse_import(text: str, *, now: int | None = None) -> ImportResult:
    """Read a backup document, repairing what can be repaired.

    Never raises: every failure comes back as ``ImportResult(False, error)``.
    """
    ts = now_ms() if now is None else now
    try:
        raw = _load_document(text)
    except ImportFormatError as exc:
        return ImportResult(False, error=exc.message)
    data = _coerce(raw, ts)
    if not data.tasks and not data.links:
        return ImportResult(False, error=NOTHING_TO_IMPORT)
    return ImportResult(True, data=data)


def build_export(data: UserData, *, now: int | None = None) -> dict[str, Any]:
    ts = now_ms() if now is None else now
    return {
        "tasks": [task.to_dict() for task in data.tasks],
        "links": [link.to_dict() for link in data.links],
        "exportedAt": iso_from_ms(ts),
    }
