from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, TypeVar

from .models import Task, TaskUpdate


class _HasId(Protocol):
    id: str


T = TypeVar("T", bound=_HasId)


def reorder_by_ids(items: Sequence[T], ids: Sequence[str]) -> list[T]:
    """Put ``ids`` first in the given order, then everything not named.

    Unknown ids are skipped and repeated ids count once.
    """
    by_id = {item.id: item for item in items}
    ordered: list[T] = []
    seen: set[str] = set()
    for item_id in ids:
        if item_id in seen or item_id not in by_id:
            continue
        seen.add(item_id)
        ordered.append(by_id[item_id])
    ordered.extend(item for item in items if item.id not in seen)
    return ordered


def _in_group(task: Task, group_key: str, group_value: Any) -> bool:
    value = task.group_value(group_key)
    if group_value is None:
        return not value
    return value == group_value


def move_task(
    tasks: Sequence[Task],
    task_id: str,
    update: TaskUpdate,
    index: int,
    group_key: str,
    group_value: Any,
    *,
    now: int,
) -> list[Task] | None:
    """Drop ``task_id`` at ``index`` inside the group ``group_key == group_value``.

    The result is every task outside the group (relative order kept) followed by
    the group with the moved task spliced in. Returns ``None`` when the task is
    unknown.
    """
    moving = next((task for task in tasks if task.id == task_id), None)
    if moving is None:
        return None
    moved = update.apply(moving, now=now)
    group = [t for t in tasks if t.id != task_id and _in_group(t, group_key, group_value)]
    others = [t for t in tasks if t.id != task_id and not _in_group(t, group_key, group_value)]
    position = max(0, min(index, len(group)))
    group.insert(position, moved)
    return [*others, *group]
