from __future__ import annotations

import json
import sqlite3
from collections.abc import Sequence
from typing import Any

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Link, LinkUpdate, Task, TaskUpdate, UserData
from .base import UserDataStore


def _row_to_task(row: sqlite3.Row) -> Task:
    try:
        tags = json.loads(row["tags"] or "[]")
    except json.JSONDecodeError:
        tags = []
    return Task(
        id=row["id"],
        title=row["title"],
        note=row["note"],
        tags=[tag for tag in tags if isinstance(tag, str)] if isinstance(tags, list) else [],
        color=row["color"],
        quadrant=row["quadrant"],
        kanban_status=row["kanban_status"],
        completed=row["completed"] == 1,
        created_at=int(row["created_at"]),
        updated_at=int(row["updated_at"]),
    )


def _row_to_link(row: sqlite3.Row) -> Link:
    return Link(
        id=row["id"],
        url=row["url"],
        title=row["title"],
        favicon=row["favicon"],
        created_at=int(row["created_at"]),
    )


def _task_params(task: Task) -> tuple[Any, ...]:
    return (
        task.title,
        task.note,
        json.dumps(task.tags, ensure_ascii=False),
        task.color,
        task.quadrant,
        task.kanban_status,
        1 if task.completed else 0,
        task.created_at,
        task.updated_at,
    )


class TableStore(UserDataStore):
    """Relational variant: one row per task/link with an explicit sort order."""

    def user_exists(self, uuid: str) -> bool:
        row = self.conn.execute("SELECT 1 FROM users WHERE uuid = ?", (uuid,)).fetchone()
        return row is not None

    def register_user(self, uuid: str, *, now: int) -> UserData:
        try:
            self.conn.execute(
                "INSERT INTO users(uuid, created_at, updated_at) VALUES (?, ?, ?)",
                (uuid, now, now),
            )
        except sqlite3.IntegrityError as exc:
            self.conn.rollback()
            raise ConflictError() from exc
        self.conn.commit()
        return UserData.empty(now)

    def delete_user(self, uuid: str) -> None:
        # tasks and links go with the user row through ON DELETE CASCADE
        self.conn.execute("DELETE FROM users WHERE uuid = ?", (uuid,))
        self.conn.commit()

    def _touch_user(self, uuid: str, now: int) -> None:
        self.conn.execute(
            """
            INSERT INTO users(uuid, created_at, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(uuid) DO UPDATE SET updated_at = excluded.updated_at
            """,
            (uuid, now, now),
        )

    def get_user_data(self, uuid: str) -> UserData | None:
        row = self.conn.execute(
            "SELECT created_at, updated_at FROM users WHERE uuid = ?", (uuid,)
        ).fetchone()
        if row is None:
            return None
        return UserData(
            tasks=self.list_tasks(uuid),
            links=self.list_links(uuid),
            created_at=int(row["created_at"]),
            updated_at=int(row["updated_at"]),
        )

    def put_user_data(self, uuid: str, data: UserData, *, now: int) -> UserData:
        self._touch_user(uuid, now)
        try:
            self.conn.execute("DELETE FROM tasks WHERE user_uuid = ?", (uuid,))
            self.conn.execute("DELETE FROM links WHERE user_uuid = ?", (uuid,))
            self.conn.executemany(
                """
                INSERT INTO tasks(
                    id, user_uuid, title, note, tags, color, quadrant, kanban_status,
                    completed, created_at, updated_at, sort_order
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (task.id, uuid, *_task_params(task), index)
                    for index, task in enumerate(data.tasks)
                ],
            )
            self.conn.executemany(
                """
                INSERT INTO links(id, user_uuid, url, title, favicon, created_at, sort_order)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (link.id, uuid, link.url, link.title, link.favicon, link.created_at, index)
                    for index, link in enumerate(data.links)
                ],
            )
        except sqlite3.IntegrityError as exc:
            self.conn.rollback()
            raise ValidationError("duplicate id") from exc
        self.conn.commit()
        stored = self.get_user_data(uuid)
        assert stored is not None
        return stored

    def list_tasks(self, uuid: str) -> list[Task]:
        rows = self.conn.execute(
            "SELECT * FROM tasks WHERE user_uuid = ? ORDER BY sort_order ASC",
            (uuid,),
        ).fetchall()
        return [_row_to_task(row) for row in rows]

    def _next_sort_order(self, table: str, uuid: str) -> int:
        row = self.conn.execute(
            f"SELECT COALESCE(MAX(sort_order), -1) AS max_order FROM {table} WHERE user_uuid = ?",
            (uuid,),
        ).fetchone()
        return int(row["max_order"]) + 1

    def create_task(self, uuid: str, task: Task, *, now: int) -> Task:
        self._touch_user(uuid, now)
        try:
            self.conn.execute(
                """
                INSERT INTO tasks(
                    id, user_uuid, title, note, tags, color, quadrant, kanban_status,
                    completed, created_at, updated_at, sort_order
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (task.id, uuid, *_task_params(task), self._next_sort_order("tasks", uuid)),
            )
        except sqlite3.IntegrityError as exc:
            self.conn.rollback()
            raise ValidationError("duplicate task id") from exc
        self.conn.commit()
        return task

    def _get_task(self, uuid: str, task_id: str) -> Task:
        row = self.conn.execute(
            "SELECT * FROM tasks WHERE id = ? AND user_uuid = ?", (task_id, uuid)
        ).fetchone()
        if row is None:
            raise NotFoundError("Task not found")
        return _row_to_task(row)

    def update_task(self, uuid: str, task_id: str, update: TaskUpdate, *, now: int) -> Task:
        updated = update.apply(self._get_task(uuid, task_id), now=now)
        self.conn.execute(
            """
            UPDATE tasks
            SET title = ?, note = ?, tags = ?, color = ?, quadrant = ?, kanban_status = ?,
                completed = ?, created_at = ?, updated_at = ?
            WHERE id = ? AND user_uuid = ?
            """,
            (*_task_params(updated), task_id, uuid),
        )
        self._touch_user(uuid, now)
        self.conn.commit()
        return updated

    def delete_task(self, uuid: str, task_id: str, *, now: int) -> None:
        self.conn.execute("DELETE FROM tasks WHERE id = ? AND user_uuid = ?", (task_id, uuid))
        self._touch_user(uuid, now)
        self.conn.commit()

    def reorder_tasks(self, uuid: str, task_ids: Sequence[str], *, now: int) -> None:
        self.conn.executemany(
            """
            UPDATE tasks SET sort_order = ?, updated_at = ?
            WHERE id = ? AND user_uuid = ?
            """,
            [(index, now, task_id, uuid) for index, task_id in enumerate(task_ids)],
        )
        self._touch_user(uuid, now)
        self.conn.commit()

    def list_links(self, uuid: str) -> list[Link]:
        rows = self.conn.execute(
            "SELECT * FROM links WHERE user_uuid = ? ORDER BY sort_order ASC",
            (uuid,),
        ).fetchall()
        return [_row_to_link(row) for row in rows]

    def create_link(self, uuid: str, link: Link, *, now: int) -> Link:
        self._touch_user(uuid, now)
        try:
            self.conn.execute(
                """
                INSERT INTO links(id, user_uuid, url, title, favicon, created_at, sort_order)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    link.id,
                    uuid,
                    link.url,
                    link.title,
                    link.favicon,
                    link.created_at,
                    self._next_sort_order("links", uuid),
                ),
            )
        except sqlite3.IntegrityError as exc:
            self.conn.rollback()
            raise ValidationError("duplicate link id") from exc
        self.conn.commit()
        return link

    def update_link(self, uuid: str, link_id: str, update: LinkUpdate, *, now: int) -> Link:
        row = self.conn.execute(
            "SELECT * FROM links WHERE id = ? AND user_uuid = ?", (link_id, uuid)
        ).fetchone()
        if row is None:
            raise NotFoundError("Link not found")
        updated = update.apply(_row_to_link(row))
        self.conn.execute(
            "UPDATE links SET url = ?, title = ?, favicon = ? WHERE id = ? AND user_uuid = ?",
            (updated.url, updated.title, updated.favicon, link_id, uuid),
        )
        self._touch_user(uuid, now)
        self.conn.commit()
        return updated

    def delete_link(self, uuid: str, link_id: str, *, now: int) -> None:
        self.conn.execute("DELETE FROM links WHERE id = ? AND user_uuid = ?", (link_id, uuid))
        self._touch_user(uuid, now)
        self.conn.commit()

    def reorder_links(self, uuid: str, link_ids: Sequence[str], *, now: int) -> None:
        self.conn.executemany(
            "UPDATE links SET sort_order = ? WHERE id = ? AND user_uuid = ?",
            [(index, link_id, uuid) for index, link_id in enumerate(link_ids)],
        )
        self._touch_user(uuid, now)
        self.conn.commit()
