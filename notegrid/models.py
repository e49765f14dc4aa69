from __future__ import annotations

import math
import time
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Union
from uuid import uuid4

from .errors import ValidationError

COLORS = (
    "#ef4444",
    "#22c55e",
    "#f97316",
    "#3b82f6",
    "#8b5cf6",
    "#ec4899",
    "#14b8a6",
    "#facc15",
    "#64748b",
    "#0f172a",
)
DEFAULT_COLOR = COLORS[0]

COLOR_NAMES = {
    "#ef4444": "Red",
    "#22c55e": "Green",
    "#f97316": "Orange",
    "#3b82f6": "Blue",
    "#8b5cf6": "Purple",
    "#ec4899": "Pink",
    "#14b8a6": "Teal",
    "#facc15": "Yellow",
    "#64748b": "Gray",
    "#0f172a": "Dark",
}

QUADRANTS = ("do", "decide", "delegate", "delete")
QUADRANT_LABELS = {
    "do": "Do",
    "decide": "Schedule",
    "delegate": "Delegate",
    "delete": "Eliminate",
}
KANBAN_STATUSES = ("backlog", "todo", "in-progress", "done")

# Python attribute -> wire key for the task fields a grouped move can target.
GROUP_FIELDS = {
    "quadrant": "quadrant",
    "kanban_status": "kanbanStatus",
    "color": "color",
    "completed": "completed",
}


class _Missing(Enum):
    MISSING = "MISSING"

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing.MISSING


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid4())


def _str_or(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default


# Largest integer a JSON number can carry exactly in a browser.
MAX_SAFE_MS = 2**53 - 1


def coerce_ms(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    if abs(value) > MAX_SAFE_MS:
        return default
    return int(value)


def _choice_or_none(value: Any, choices: Iterable[str]) -> str | None:
    return value if isinstance(value, str) and value in choices else None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _first_present(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return None


@dataclass
class Task:
    id: str
    title: str = ""
    note: str = ""
    tags: list[str] = field(default_factory=list)
    color: str = DEFAULT_COLOR
    quadrant: str | None = None
    kanban_status: str | None = None
    completed: bool = False
    created_at: int = 0
    updated_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "note": self.note,
            "tags": list(self.tags),
            "color": self.color,
            "quadrant": self.quadrant,
            "kanbanStatus": self.kanban_status,
            "completed": self.completed,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any], *, now: int | None = None) -> Task:
        """Build a task from a wire/backup payload, defaulting anything unusable.

        Legacy payloads used ``q`` and ``kanban`` for the grouping fields; both
        spellings are accepted.
        """
        ts = now_ms() if now is None else now
        completed = raw.get("completed")
        return cls(
            id=_str_or(raw.get("id"), "") or new_id(),
            title=_str_or(raw.get("title"), ""),
            note=_str_or(raw.get("note"), ""),
            tags=_string_list(raw.get("tags")),
            color=raw["color"] if raw.get("color") in COLORS else DEFAULT_COLOR,
            quadrant=_choice_or_none(_first_present(raw, "quadrant", "q"), QUADRANTS),
            kanban_status=_choice_or_none(
                _first_present(raw, "kanbanStatus", "kanban"), KANBAN_STATUSES
            ),
            completed=completed if isinstance(completed, bool) else False,
            created_at=coerce_ms(raw.get("createdAt"), ts),
            updated_at=coerce_ms(raw.get("updatedAt"), ts),
        )

    def group_value(self, key: str) -> Any:
        if key not in GROUP_FIELDS:
            raise ValueError(f"unknown group field: {key}")
        return getattr(self, key)


@dataclass
class Link:
    id: str
    url: str
    title: str = ""
    favicon: str = ""
    created_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "favicon": self.favicon,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any], *, now: int | None = None) -> Link:
        ts = now_ms() if now is None else now
        return cls(
            id=_str_or(raw.get("id"), "") or new_id(),
            url=_str_or(raw.get("url"), ""),
            title=_str_or(raw.get("title"), ""),
            favicon=_str_or(raw.get("favicon"), ""),
            created_at=coerce_ms(raw.get("createdAt"), ts),
        )


@dataclass
class UserData:
    tasks: list[Task] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0
    # Set when decoding upgraded a legacy payload that should be written back once.
    legacy: bool = field(default=False, repr=False, compare=False)

    @classmethod
    def empty(cls, now: int | None = None) -> UserData:
        ts = now_ms() if now is None else now
        return cls(tasks=[], links=[], created_at=ts, updated_at=ts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tasks": [task.to_dict() for task in self.tasks],
            "links": [link.to_dict() for link in self.links],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any], *, now: int | None = None) -> UserData:
        if not isinstance(raw, dict):
            raise ValidationError()
        ts = now_ms() if now is None else now
        raw_tasks = raw.get("tasks") if isinstance(raw.get("tasks"), list) else []
        raw_links = raw.get("links") if isinstance(raw.get("links"), list) else []
        tasks: list[Task] = []
        legacy = False
        for item in raw_tasks:
            if not isinstance(item, dict):
                continue
            task = Task.from_dict(item, now=ts)
            if "kanbanStatus" not in item and "kanban" not in item:
                task = replace(task, kanban_status=None, updated_at=ts)
                legacy = True
            tasks.append(task)
        links = [Link.from_dict(item, now=ts) for item in raw_links if isinstance(item, dict)]
        data = cls(
            tasks=tasks,
            links=links,
            created_at=coerce_ms(raw.get("createdAt"), ts),
            updated_at=ts if legacy else coerce_ms(raw.get("updatedAt"), ts),
        )
        data.legacy = legacy
        return data

    def copy(self) -> UserData:
        return UserData(
            tasks=list(self.tasks),
            links=list(self.links),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def find_task(self, task_id: str) -> Task | None:
        return next((task for task in self.tasks if task.id == task_id), None)

    def find_link(self, link_id: str) -> Link | None:
        return next((link for link in self.links if link.id == link_id), None)


Maybe = Union[Any, _Missing]


def _check_str(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    return value


def _check_choice(name: str, value: Any, choices: Iterable[str]) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or value not in choices:
        raise ValidationError(f"invalid {name}")
    return value


@dataclass(frozen=True)
class TaskUpdate:
    """Partial task edit.

    Every field defaults to ``MISSING`` (leave unchanged). ``None`` is a real
    value for the nullable fields and clears them.
    """

    title: Maybe = MISSING
    note: Maybe = MISSING
    tags: Maybe = MISSING
    color: Maybe = MISSING
    quadrant: Maybe = MISSING
    kanban_status: Maybe = MISSING
    completed: Maybe = MISSING

    _WIRE_KEYS = {
        "title": "title",
        "note": "note",
        "tags": "tags",
        "color": "color",
        "quadrant": "quadrant",
        "kanban_status": "kanbanStatus",
        "completed": "completed",
    }

    def __post_init__(self) -> None:
        if self.title is not MISSING:
            _check_str("title", self.title)
        if self.note is not MISSING:
            _check_str("note", self.note)
        if self.tags is not MISSING:
            if not isinstance(self.tags, list) or not all(isinstance(t, str) for t in self.tags):
                raise ValidationError("tags must be a list of strings")
        if self.color is not MISSING and self.color not in COLORS:
            raise ValidationError("invalid color")
        if self.quadrant is not MISSING:
            _check_choice("quadrant", self.quadrant, QUADRANTS)
        if self.kanban_status is not MISSING:
            _check_choice("kanbanStatus", self.kanban_status, KANBAN_STATUSES)
        if self.completed is not MISSING and not isinstance(self.completed, bool):
            raise ValidationError("completed must be a boolean")

    def present(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in self._WIRE_KEYS
            if getattr(self, name) is not MISSING
        }

    def is_empty(self) -> bool:
        return not self.present()

    def apply(self, task: Task, *, now: int) -> Task:
        changes = self.present()
        if "tags" in changes:
            changes["tags"] = list(changes["tags"])
        return replace(task, **changes, updated_at=now)

    def to_dict(self) -> dict[str, Any]:
        return {self._WIRE_KEYS[name]: value for name, value in self.present().items()}

    @classmethod
    def from_dict(cls, raw: Any) -> TaskUpdate:
        if not isinstance(raw, dict):
            raise ValidationError()
        values: dict[str, Any] = {}
        for name, wire_key in cls._WIRE_KEYS.items():
            if wire_key in raw:
                values[name] = raw[wire_key]
        # Legacy spellings from older clients.
        if "quadrant" not in values and "q" in raw:
            values["quadrant"] = raw["q"]
        if "kanban_status" not in values and "kanban" in raw:
            values["kanban_status"] = raw["kanban"]
        return cls(**values)


@dataclass(frozen=True)
class LinkUpdate:
    url: Maybe = MISSING
    title: Maybe = MISSING
    favicon: Maybe = MISSING

    def __post_init__(self) -> None:
        for name in ("url", "title", "favicon"):
            value = getattr(self, name)
            if value is not MISSING:
                _check_str(name, value)
        if self.url is not MISSING and not self.url.strip():
            raise ValidationError("url must not be empty")

    def present(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in ("url", "title", "favicon")
            if getattr(self, name) is not MISSING
        }

    def is_empty(self) -> bool:
        return not self.present()

    def apply(self, link: Link) -> Link:
        return replace(link, **self.present())

    def to_dict(self) -> dict[str, Any]:
        return self.present()

    @classmethod
    def from_dict(cls, raw: Any) -> LinkUpdate:
        if not isinstance(raw, dict):
            raise ValidationError()
        return cls(**{name: raw[name] for name in ("url", "title", "favicon") if name in raw})
