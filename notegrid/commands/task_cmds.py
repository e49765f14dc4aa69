from __future__ import annotations

import json
from typing import Any

import typer
from rich import print
from rich.markup import escape

from ..errors import ValidationError
from ..models import (
    COLOR_NAMES,
    COLORS,
    GROUP_FIELDS,
    KANBAN_STATUSES,
    QUADRANT_LABELS,
    QUADRANTS,
    Task,
    TaskUpdate,
)
from .common import active_engine, fail, parse_bool, parse_color, parse_optional, resolve_ref, short_id

VIEWS = ("list", "matrix", "kanban")


def _format_task(task: Task) -> str:
    mark = "[green]x[/green]" if task.completed else " "
    parts = [f"[{mark}] [bold]{short_id(task.id)}[/bold] {escape(task.title) or '[dim](untitled)[/dim]'}"]
    meta = [COLOR_NAMES.get(task.color, task.color).lower()]
    if task.quadrant:
        meta.append(QUADRANT_LABELS[task.quadrant].lower())
    if task.kanban_status:
        meta.append(task.kanban_status)
    parts.append(f"[dim]({', '.join(meta)})[/dim]")
    if task.tags:
        parts.append(" ".join(f"#{escape(tag)}" for tag in task.tags))
    return " ".join(parts)


def _print_group(title: str, tasks: list[Task]) -> None:
    print(f"[bold]{title}[/bold] ({len(tasks)})")
    for task in tasks:
        print(f"  {_format_task(task)}")


def tasks_list_cmd(*, session_factory, view: str, show_completed: bool, as_json: bool) -> None:
    if view not in VIEWS:
        raise fail(f"Unknown view {view!r} (use one of: {', '.join(VIEWS)})")
    with active_engine(session_factory) as engine:
        tasks = [task for task in engine.tasks if show_completed or not task.completed]
    if as_json:
        typer.echo(json.dumps([task.to_dict() for task in tasks], indent=2, ensure_ascii=False))
        return
    if not tasks:
        print("[yellow]No tasks[/yellow]")
        return
    if view == "matrix":
        for quadrant in QUADRANTS:
            _print_group(QUADRANT_LABELS[quadrant], [t for t in tasks if t.quadrant == quadrant])
        _print_group("Unsorted", [t for t in tasks if not t.quadrant])
    elif view == "kanban":
        for status in KANBAN_STATUSES:
            _print_group(status, [t for t in tasks if t.kanban_status == status])
        _print_group("No status", [t for t in tasks if not t.kanban_status])
    else:
        for color in COLORS:
            group = [t for t in tasks if t.color == color]
            if group:
                _print_group(COLOR_NAMES[color], group)
        others = [t for t in tasks if t.color not in COLORS]
        if others:
            _print_group("Other", others)


def _build_update(
    *,
    title: str | None = None,
    note: str | None = None,
    tags: list[str] | None = None,
    color: str | None = None,
    quadrant: str | None = None,
    kanban: str | None = None,
    completed: bool | None = None,
) -> TaskUpdate:
    fields: dict[str, Any] = {}
    if title is not None:
        fields["title"] = title
    if note is not None:
        fields["note"] = note
    if tags:
        fields["tags"] = [tag.strip() for tag in tags if tag.strip()]
    if color is not None:
        fields["color"] = parse_color(color)
    if quadrant is not None:
        fields["quadrant"] = parse_optional(quadrant, QUADRANTS, label="quadrant")
    if kanban is not None:
        fields["kanban_status"] = parse_optional(kanban, KANBAN_STATUSES, label="kanban status")
    if completed is not None:
        fields["completed"] = completed
    try:
        return TaskUpdate(**fields)
    except ValidationError as exc:
        raise fail(exc.message) from exc


def tasks_add_cmd(
    *,
    session_factory,
    title: str,
    note: str | None,
    tags: list[str] | None,
    color: str | None,
    quadrant: str | None,
    kanban: str | None,
) -> None:
    update = _build_update(
        title=title, note=note, tags=tags, color=color, quadrant=quadrant, kanban=kanban
    )
    with active_engine(session_factory) as engine:
        task = engine.add_task(**update.present())
    if task is None:
        raise fail("Data not loaded; nothing saved")
    print(f"[green]Added[/green] {_format_task(task)}")


def tasks_update_cmd(
    *,
    session_factory,
    ref: str,
    title: str | None,
    note: str | None,
    tags: list[str] | None,
    color: str | None,
    quadrant: str | None,
    kanban: str | None,
) -> None:
    update = _build_update(
        title=title, note=note, tags=tags, color=color, quadrant=quadrant, kanban=kanban
    )
    if update.is_empty():
        raise fail("Nothing to update")
    with active_engine(session_factory) as engine:
        task = resolve_ref(engine.tasks, ref, label="Task")
        updated = engine.update_task(task.id, update)
    if updated is None:
        raise fail(f"Task {ref} not found")
    print(f"[green]Updated[/green] {_format_task(updated)}")


def tasks_done_cmd(*, session_factory, ref: str, undo: bool) -> None:
    with active_engine(session_factory) as engine:
        task = resolve_ref(engine.tasks, ref, label="Task")
        updated = engine.update_task(task.id, TaskUpdate(completed=not undo))
    if updated is None:
        raise fail(f"Task {ref} not found")
    print(f"[green]{'Reopened' if undo else 'Completed'}[/green] {_format_task(updated)}")


def tasks_rm_cmd(*, session_factory, ref: str) -> None:
    with active_engine(session_factory) as engine:
        task = resolve_ref(engine.tasks, ref, label="Task")
        engine.delete_task(task.id)
    print(f"[green]Deleted[/green] {short_id(task.id)} {escape(task.title)}")


def _group_value(group: str, value: str) -> Any:
    if group == "quadrant":
        return parse_optional(value, QUADRANTS, label="quadrant")
    if group == "kanban_status":
        return parse_optional(value, KANBAN_STATUSES, label="kanban status")
    if group == "color":
        return parse_color(value)
    return parse_bool(value, label="completed")


def tasks_move_cmd(*, session_factory, ref: str, group: str, value: str, index: int) -> None:
    group_key = group.replace("-", "_")
    if group_key == "kanban":
        group_key = "kanban_status"
    if group_key not in GROUP_FIELDS:
        raise fail(f"Unknown group {group!r} (use one of: {', '.join(GROUP_FIELDS)})")
    group_value = _group_value(group_key, value)
    update = TaskUpdate(**{group_key: group_value})
    with active_engine(session_factory) as engine:
        task = resolve_ref(engine.tasks, ref, label="Task")
        moved = engine.move_task(task.id, update, index, group_key, group_value)
    if moved is None:
        raise fail(f"Task {ref} not found")
    print(f"[green]Moved[/green] {short_id(task.id)} to {group_key}={value} at {max(index, 0)}")
