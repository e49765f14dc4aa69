from __future__ import annotations

import json
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Link, LinkUpdate, Task, TaskUpdate, UserData
from ..ordering import reorder_by_ids
from .base import UserDataStore


class BlobStore(UserDataStore):
    """Key-value variant: the whole document is one JSON value per identity.

    Field-level operations are read-modify-write of that value inside an
    immediate transaction.
    """

    def user_exists(self, uuid: str) -> bool:
        row = self.conn.execute("SELECT 1 FROM user_blobs WHERE uuid = ?", (uuid,)).fetchone()
        return row is not None

    def _read(self, uuid: str) -> UserData | None:
        row = self.conn.execute(
            "SELECT data_json FROM user_blobs WHERE uuid = ?", (uuid,)
        ).fetchone()
        if row is None:
            return None
        return UserData.from_dict(json.loads(row["data_json"]))

    def _write(self, uuid: str, data: UserData) -> None:
        self.conn.execute(
            """
            INSERT INTO user_blobs(uuid, data_json, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(uuid) DO UPDATE SET
                data_json = excluded.data_json,
                updated_at = excluded.updated_at
            """,
            (uuid, json.dumps(data.to_dict(), ensure_ascii=False), data.updated_at),
        )

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        self.conn.execute("BEGIN IMMEDIATE")
        try:
            yield
        except BaseException:
            self.conn.rollback()
            raise
        self.conn.commit()

    def _mutate(self, uuid: str, now: int, fn: Callable[[UserData], UserData]) -> UserData:
        with self._transaction():
            current = self._read(uuid) or UserData.empty(now)
            updated = fn(current)
            updated.updated_at = now
            self._write(uuid, updated)
        return updated

    def register_user(self, uuid: str, *, now: int) -> UserData:
        data = UserData.empty(now)
        with self._transaction():
            if self.user_exists(uuid):
                raise ConflictError()
            self._write(uuid, data)
        return data

    def delete_user(self, uuid: str) -> None:
        self.conn.execute("DELETE FROM user_blobs WHERE uuid = ?", (uuid,))
        self.conn.commit()

    def get_user_data(self, uuid: str) -> UserData | None:
        return self._read(uuid)

    def put_user_data(self, uuid: str, data: UserData, *, now: int) -> UserData:
        ids = [task.id for task in data.tasks]
        link_ids = [link.id for link in data.links]
        if len(set(ids)) != len(ids) or len(set(link_ids)) != len(link_ids):
            raise ValidationError("duplicate id")
        stored = replace(data, updated_at=now)
        with self._transaction():
            self._write(uuid, stored)
        return stored

    def list_tasks(self, uuid: str) -> list[Task]:
        data = self._read(uuid)
        return list(data.tasks) if data else []

    def create_task(self, uuid: str, task: Task, *, now: int) -> Task:
        def _add(data: UserData) -> UserData:
            if data.find_task(task.id) is not None:
                raise ValidationError("duplicate task id")
            data.tasks.append(task)
            return data

        self._mutate(uuid, now, _add)
        return task

    def update_task(self, uuid: str, task_id: str, update: TaskUpdate, *, now: int) -> Task:
        result: list[Task] = []

        def _edit(data: UserData) -> UserData:
            existing = data.find_task(task_id)
            if existing is None:
                raise NotFoundError("Task not found")
            updated = update.apply(existing, now=now)
            data.tasks = [updated if task.id == task_id else task for task in data.tasks]
            result.append(updated)
            return data

        self._mutate(uuid, now, _edit)
        return result[0]

    def delete_task(self, uuid: str, task_id: str, *, now: int) -> None:
        def _drop(data: UserData) -> UserData:
            data.tasks = [task for task in data.tasks if task.id != task_id]
            return data

        self._mutate(uuid, now, _drop)

    def reorder_tasks(self, uuid: str, task_ids: Sequence[str], *, now: int) -> None:
        def _reorder(data: UserData) -> UserData:
            data.tasks = reorder_by_ids(data.tasks, task_ids)
            return data

        self._mutate(uuid, now, _reorder)

    def list_links(self, uuid: str) -> list[Link]:
        data = self._read(uuid)
        return list(data.links) if data else []

    def create_link(self, uuid: str, link: Link, *, now: int) -> Link:
        def _add(data: UserData) -> UserData:
            if data.find_link(link.id) is not None:
                raise ValidationError("duplicate link id")
            data.links.append(link)
            return data

        self._mutate(uuid, now, _add)
        return link

    def update_link(self, uuid: str, link_id: str, update: LinkUpdate, *, now: int) -> Link:
        result: list[Link] = []

        def _edit(data: UserData) -> UserData:
            existing = data.find_link(link_id)
            if existing is None:
                raise NotFoundError("Link not found")
            updated = update.apply(existing)
            data.links = [updated if link.id == link_id else link for link in data.links]
            result.append(updated)
            return data

        self._mutate(uuid, now, _edit)
        return result[0]

    def delete_link(self, uuid: str, link_id: str, *, now: int) -> None:
        def _drop(data: UserData) -> UserData:
            data.links = [link for link in data.links if link.id != link_id]
            return data

        self._mutate(uuid, now, _drop)

    def reorder_links(self, uuid: str, link_ids: Sequence[str], *, now: int) -> None:
        def _reorder(data: UserData) -> UserData:
            data.links = reorder_by_ids(data.links, link_ids)
            return data

        self._mutate(uuid, now, _reorder)
