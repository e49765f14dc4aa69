from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any, TypeVar

from .cache import LocalCache
from .client.sync import (
    LINK_CREATE,
    LINK_DELETE,
    LINK_REORDER,
    LINK_UPDATE,
    REPLACE,
    TASK_CREATE,
    TASK_DELETE,
    TASK_REORDER,
    TASK_UPDATE,
    Change,
    SyncBackend,
)
from .errors import NotegridError
from .models import Link, LinkUpdate, Task, TaskUpdate, UserData, new_id, now_ms
from .ordering import move_task, reorder_by_ids
from .transfer import ImportResult, build_export, parse_import

logger = logging.getLogger(__name__)

R = TypeVar("R")


class ReconciliationEngine:
    """Optimistic local view of one identity's data.

    Mutations apply to memory and the cache immediately and are handed to the
    sync backend without waiting. Loads, timer ticks and focus regain overwrite
    local state with the remote document.
    """

    def __init__(
        self,
        backend: SyncBackend,
        cache: LocalCache,
        *,
        refresh_interval_s: float = 30.0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.backend = backend
        self.cache = cache
        self.refresh_interval_s = refresh_interval_s
        self._clock = clock
        self._lock = threading.Lock()
        self._data: UserData | None = None
        self._loading = False
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()

    @property
    def data(self) -> UserData | None:
        with self._lock:
            return self._data

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._loading

    @property
    def tasks(self) -> list[Task]:
        data = self.data
        return list(data.tasks) if data else []

    @property
    def links(self) -> list[Link]:
        data = self.data
        return list(data.links) if data else []

    def start(self) -> None:
        self._stop.clear()
        self.load()
        if self.refresh_interval_s <= 0:
            return
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="notegrid-refresh", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self.refresh_interval_s):
            try:
                self.refresh()
            except Exception as exc:
                logger.exception("background refresh crashed", exc_info=exc)

    def stop(self, timeout_s: float = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout_s)
        self._thread = None
        if not self.backend.flush(timeout_s):
            logger.warning("pending changes not delivered within %.1fs", timeout_s)

    def _adopt(self, remote: UserData) -> None:
        # Caller holds the lock.
        self._data = remote
        self.cache.save(remote)
        if remote.legacy:
            remote.legacy = False
            self.backend.push(Change(REPLACE), remote)

    def load(self) -> UserData:
        with self._lock:
            self._loading = True
            cached = self.cache.load()
            if cached is not None:
                self._data = cached
        try:
            remote = self.backend.fetch()
        except NotegridError as exc:
            logger.warning("initial load failed; using local copy: %s", exc, exc_info=exc)
            with self._lock:
                if self._data is None:
                    self._data = UserData.empty(self._clock())
                self._loading = False
                return self._data
        except BaseException:
            with self._lock:
                self._loading = False
            raise
        with self._lock:
            self._adopt(remote)
            self._loading = False
            return remote

    def refresh(self) -> UserData | None:
        try:
            remote = self.backend.fetch()
        except NotegridError as exc:
            logger.warning("refresh failed: %s", exc, exc_info=exc)
            return None
        with self._lock:
            # No cache writes after stop().
            if self._stop.is_set():
                return None
            self._adopt(remote)
        return remote

    def notify_focus(self) -> UserData | None:
        return self.refresh()

    def _commit(self, step: Callable[[UserData, int], tuple[UserData, list[Change], R] | None]) -> R | None:
        with self._lock:
            if self._data is None:
                return None
            now = self._clock()
            outcome = step(self._data, now)
            if outcome is None:
                return None
            data, changes, value = outcome
            data.updated_at = now
            self._data = data
            self.cache.save(data)
            for change in changes:
                self.backend.push(change, data)
        return value

    def add_task(self, **fields: Any) -> Task | None:
        update = TaskUpdate(**fields)

        def step(current: UserData, now: int) -> tuple[UserData, list[Change], Task]:
            task = update.apply(Task(id=new_id(), created_at=now), now=now)
            data = current.copy()
            data.tasks.append(task)
            return data, [Change(TASK_CREATE, task.id, task)], task

        return self._commit(step)

    def update_task(self, task_id: str, update: TaskUpdate) -> Task | None:
        def step(current: UserData, now: int) -> tuple[UserData, list[Change], Task] | None:
            existing = current.find_task(task_id)
            if existing is None:
                return None
            updated = update.apply(existing, now=now)
            data = current.copy()
            data.tasks = [updated if task.id == task_id else task for task in data.tasks]
            return data, [Change(TASK_UPDATE, task_id, update)], updated

        return self._commit(step)

    def delete_task(self, task_id: str) -> bool | None:
        def step(current: UserData, now: int) -> tuple[UserData, list[Change], bool]:
            data = current.copy()
            data.tasks = [task for task in data.tasks if task.id != task_id]
            return data, [Change(TASK_DELETE, task_id)], len(data.tasks) != len(current.tasks)

        return self._commit(step)

    def reorder_tasks(self, task_ids: Sequence[str]) -> list[Task] | None:
        ids = list(task_ids)

        def step(current: UserData, now: int) -> tuple[UserData, list[Change], list[Task]]:
            data = current.copy()
            data.tasks = reorder_by_ids(current.tasks, ids)
            return data, [Change(TASK_REORDER, value=[t.id for t in data.tasks])], data.tasks

        return self._commit(step)

    def move_task(
        self,
        task_id: str,
        update: TaskUpdate,
        index: int,
        group_key: str,
        group_value: Any,
    ) -> list[Task] | None:
        def step(current: UserData, now: int) -> tuple[UserData, list[Change], list[Task]] | None:
            moved = move_task(
                current.tasks, task_id, update, index, group_key, group_value, now=now
            )
            if moved is None:
                return None
            data = current.copy()
            data.tasks = moved
            changes = [
                Change(TASK_UPDATE, task_id, update),
                Change(TASK_REORDER, value=[task.id for task in moved]),
            ]
            return data, changes, moved

        return self._commit(step)

    def add_link(self, url: str, title: str = "", favicon: str = "") -> Link | None:
        update = LinkUpdate(url=url, title=title, favicon=favicon)

        def step(current: UserData, now: int) -> tuple[UserData, list[Change], Link]:
            link = update.apply(Link(id=new_id(), url=url, created_at=now))
            data = current.copy()
            data.links.append(link)
            return data, [Change(LINK_CREATE, link.id, link)], link

        return self._commit(step)

    def update_link(self, link_id: str, update: LinkUpdate) -> Link | None:
        def step(current: UserData, now: int) -> tuple[UserData, list[Change], Link] | None:
            existing = current.find_link(link_id)
            if existing is None:
                return None
            updated = update.apply(existing)
            data = current.copy()
            data.links = [updated if link.id == link_id else link for link in data.links]
            return data, [Change(LINK_UPDATE, link_id, update)], updated

        return self._commit(step)

    def delete_link(self, link_id: str) -> bool | None:
        def step(current: UserData, now: int) -> tuple[UserData, list[Change], bool]:
            data = current.copy()
            data.links = [link for link in data.links if link.id != link_id]
            return data, [Change(LINK_DELETE, link_id)], len(data.links) != len(current.links)

        return self._commit(step)

    def reorder_links(self, link_ids: Sequence[str]) -> list[Link] | None:
        ids = list(link_ids)

        def step(current: UserData, now: int) -> tuple[UserData, list[Change], list[Link]]:
            data = current.copy()
            data.links = reorder_by_ids(current.links, ids)
            return data, [Change(LINK_REORDER, value=[link.id for link in data.links])], data.links

        return self._commit(step)

    def import_data(self, text: str) -> ImportResult:
        result = parse_import(text, now=self._clock())
        if not result.success or result.data is None:
            return result
        imported = result.data

        def step(current: UserData, now: int) -> tuple[UserData, list[Change], bool]:
            data = replace(imported, tasks=list(imported.tasks), links=list(imported.links))
            return data, [Change(REPLACE)], True

        if self._commit(step) is None:
            return ImportResult(False, error="Not signed in")
        return result

    def export_data(self) -> dict[str, Any] | None:
        data = self.data
        if data is None:
            return None
        return build_export(data, now=self._clock())
