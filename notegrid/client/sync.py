from __future__ import annotations

import logging
import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..config import SYNC_MODES
from ..errors import NotegridError
from ..models import UserData

logger = logging.getLogger(__name__)

# Change kinds pushed by the engine. "replace" is a whole-document write.
REPLACE = "replace"
TASK_CREATE = "task.create"
TASK_UPDATE = "task.update"
TASK_DELETE = "task.delete"
TASK_REORDER = "task.reorder"
LINK_CREATE = "link.create"
LINK_UPDATE = "link.update"
LINK_DELETE = "link.delete"
LINK_REORDER = "link.reorder"


@dataclass(frozen=True)
class Change:
    """One local mutation, described well enough to replay it remotely.

    ``target`` is the entity id for update/delete; ``value`` is the new entity,
    the partial update, or the id list for a reorder.
    """

    kind: str
    target: str | None = None
    value: Any = None


class SyncBackend(ABC):
    """How local mutations reach the remote store."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def fetch(self) -> UserData:
        return self.client.fetch_user_data()

    @abstractmethod
    def push(self, change: Change, data: UserData) -> None:
        """Queue ``change`` for delivery. Must return promptly and never raise."""

    @abstractmethod
    def flush(self, timeout_s: float = 5.0) -> bool:
        """Deliver anything pending; returns False when ``timeout_s`` ran out."""

    def close(self) -> None:
        self.flush()


class DocumentSync(SyncBackend):
    """Debounced whole-document writes.

    Every push re-arms a single trailing timer; when it fires only the latest
    document is sent.
    """

    def __init__(self, client: Any, *, debounce_ms: int = 300) -> None:
        super().__init__(client)
        self.debounce_ms = debounce_ms
        self._lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._pending: tuple[int, UserData] | None = None
        self._generation = 0
        self._sent_generation = 0

    def push(self, change: Change, data: UserData) -> None:
        with self._lock:
            self._generation += 1
            self._pending = (self._generation, data.copy())
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(max(self.debounce_ms, 0) / 1000.0, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def _take(self) -> tuple[int, UserData] | None:
        with self._lock:
            pending = self._pending
            self._pending = None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            return pending

    def _fire(self) -> None:
        # Take and send under one lock so flush() never sees an empty queue
        # while a document is still in flight.
        with self._send_lock:
            pending = self._take()
            if pending is not None:
                self._send(*pending)

    def _send(self, generation: int, data: UserData) -> None:
        # Caller holds _send_lock.
        if generation <= self._sent_generation:
            return
        self._sent_generation = generation
        try:
            self.client.save_user_data(data)
        except NotegridError as exc:
            logger.warning("document sync failed: %s", exc, exc_info=exc)
        except Exception as exc:
            logger.exception("document sync crashed", exc_info=exc)

    def flush(self, timeout_s: float = 5.0) -> bool:
        if not self._send_lock.acquire(timeout=timeout_s):
            return False
        try:
            pending = self._take()
            if pending is not None:
                self._send(*pending)
        finally:
            self._send_lock.release()
        return True


class FieldSync(SyncBackend):
    """One targeted REST call per change, sent in order by a single worker."""

    def __init__(self, client: Any) -> None:
        super().__init__(client)
        self._queue: queue.Queue[tuple[Change, UserData] | None] = queue.Queue()
        self._cond = threading.Condition()
        self._outstanding = 0
        self._thread: threading.Thread | None = None
        self._closed = False

    def _ensure_worker(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="notegrid-field-sync", daemon=True)
        self._thread.start()

    def push(self, change: Change, data: UserData) -> None:
        if self._closed:
            logger.warning("field sync closed; dropping %s", change.kind)
            return
        with self._cond:
            self._outstanding += 1
        self._queue.put((change, data.copy()))
        self._ensure_worker()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                return
            change, data = item
            try:
                self._dispatch(change, data)
            except NotegridError as exc:
                logger.warning("field sync %s failed: %s", change.kind, exc, exc_info=exc)
            except Exception as exc:
                logger.exception("field sync %s crashed", change.kind, exc_info=exc)
            finally:
                with self._cond:
                    self._outstanding -= 1
                    self._cond.notify_all()

    def _dispatch(self, change: Change, data: UserData) -> None:
        client = self.client
        kind = change.kind
        if kind == REPLACE:
            client.save_user_data(data)
        elif kind == TASK_CREATE:
            client.create_task(change.value)
        elif kind == TASK_UPDATE:
            client.update_task(change.target, change.value)
        elif kind == TASK_DELETE:
            client.delete_task(change.target)
        elif kind == TASK_REORDER:
            client.reorder_tasks(change.value)
        elif kind == LINK_CREATE:
            client.create_link(change.value)
        elif kind == LINK_UPDATE:
            client.update_link(change.target, change.value)
        elif kind == LINK_DELETE:
            client.delete_link(change.target)
        elif kind == LINK_REORDER:
            client.reorder_links(change.value)
        else:
            raise ValueError(f"unknown change kind: {kind}")

    def flush(self, timeout_s: float = 5.0) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._outstanding == 0, timeout=timeout_s)

    def close(self) -> None:
        self.flush()
        self._closed = True
        thread = self._thread
        if thread is not None and thread.is_alive():
            self._queue.put(None)
            thread.join(timeout=5.0)


def build_sync_backend(mode: str, client: Any, *, debounce_ms: int = 300) -> SyncBackend:
    if mode == "document":
        return DocumentSync(client, debounce_ms=debounce_ms)
    if mode == "field":
        return FieldSync(client)
    raise ValueError(f"unknown sync mode: {mode} (expected one of: {', '.join(SYNC_MODES)})")
