from __future__ import annotations

import threading
import time
from typing import Any

import pytest

from notegrid.client.sync import (
    LINK_DELETE,
    REPLACE,
    TASK_CREATE,
    TASK_DELETE,
    TASK_REORDER,
    TASK_UPDATE,
    Change,
    DocumentSync,
    FieldSync,
    build_sync_backend,
)
from notegrid.errors import TransportError
from notegrid.models import Task, TaskUpdate, UserData


class FakeClient:
    def __init__(self, *, fail: bool = False, delay_s: float = 0.0) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.fail = fail
        self.delay_s = delay_s
        self.lock = threading.Lock()

    def _record(self, name: str, *args: Any) -> None:
        if self.delay_s:
            time.sleep(self.delay_s)
        with self.lock:
            self.calls.append((name, args))
        if self.fail:
            raise TransportError("offline")

    def fetch_user_data(self) -> UserData:
        self._record("fetch_user_data")
        return UserData.empty(1)

    def save_user_data(self, data: UserData) -> UserData:
        self._record("save_user_data", [task.id for task in data.tasks])
        return data

    def create_task(self, task: Task) -> Task:
        self._record("create_task", task.id)
        return task

    def update_task(self, task_id: str, update: TaskUpdate) -> None:
        self._record("update_task", task_id, update.to_dict())

    def delete_task(self, task_id: str) -> None:
        self._record("delete_task", task_id)

    def reorder_tasks(self, ids: list[str]) -> None:
        self._record("reorder_tasks", list(ids))

    def delete_link(self, link_id: str) -> None:
        self._record("delete_link", link_id)


def _doc(*task_ids: str) -> UserData:
    return UserData(tasks=[Task(id=task_id) for task_id in task_ids], created_at=1, updated_at=1)


def test_document_sync_coalesces_rapid_pushes() -> None:
    client = FakeClient()
    backend = DocumentSync(client, debounce_ms=50)

    for count in range(1, 6):
        backend.push(Change(REPLACE), _doc(*[f"t{i}" for i in range(count)]))
    time.sleep(0.3)

    assert client.calls == [("save_user_data", (["t0", "t1", "t2", "t3", "t4"],))]
    assert backend.pending() is False


def test_document_sync_sends_snapshot_not_live_object() -> None:
    client = FakeClient()
    backend = DocumentSync(client, debounce_ms=1000)
    data = _doc("a")

    backend.push(Change(REPLACE), data)
    data.tasks.append(Task(id="late"))
    backend.flush()

    assert client.calls == [("save_user_data", (["a"],))]


def test_document_sync_flush_sends_immediately() -> None:
    client = FakeClient()
    backend = DocumentSync(client, debounce_ms=10_000)

    backend.push(Change(REPLACE), _doc("a"))
    assert client.calls == []
    assert backend.flush() is True

    assert client.calls == [("save_user_data", (["a"],))]
    time.sleep(0.05)
    assert len(client.calls) == 1


class GatedClient(FakeClient):
    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def save_user_data(self, data: UserData) -> UserData:
        self.entered.set()
        self.release.wait(5)
        return super().save_user_data(data)


def test_document_sync_flush_waits_for_timer_send() -> None:
    client = GatedClient()
    backend = DocumentSync(client, debounce_ms=0)

    backend.push(Change(REPLACE), _doc("a"))
    assert client.entered.wait(2)

    assert backend.flush(timeout_s=0.1) is False
    assert client.calls == []

    results: list[bool] = []
    waiter = threading.Thread(target=lambda: results.append(backend.flush(timeout_s=2)))
    waiter.start()
    time.sleep(0.05)
    assert results == []
    client.release.set()
    waiter.join(3)

    assert results == [True]
    assert client.calls == [("save_user_data", (["a"],))]


def test_document_sync_swallows_errors(caplog: pytest.LogCaptureFixture) -> None:
    client = FakeClient(fail=True)
    backend = DocumentSync(client, debounce_ms=10)

    backend.push(Change(REPLACE), _doc("a"))
    backend.flush()
    time.sleep(0.05)

    assert len(client.calls) == 1
    assert "document sync failed" in caplog.text


def test_field_sync_dispatches_in_order() -> None:
    client = FakeClient(delay_s=0.01)
    backend = FieldSync(client)
    data = _doc("a", "b")

    backend.push(Change(TASK_CREATE, "a", Task(id="a")), data)
    backend.push(Change(TASK_UPDATE, "a", TaskUpdate(title="A")), data)
    backend.push(Change(TASK_REORDER, value=["b", "a"]), data)
    backend.push(Change(TASK_DELETE, "b"), data)
    backend.push(Change(LINK_DELETE, "l"), data)
    backend.push(Change(REPLACE), data)
    assert backend.flush(timeout_s=5) is True

    assert [name for name, _ in client.calls] == [
        "create_task",
        "update_task",
        "reorder_tasks",
        "delete_task",
        "delete_link",
        "save_user_data",
    ]
    assert client.calls[1] == ("update_task", ("a", {"title": "A"}))
    backend.close()


def test_field_sync_push_does_not_block() -> None:
    client = FakeClient(delay_s=0.2)
    backend = FieldSync(client)

    started = time.monotonic()
    backend.push(Change(TASK_DELETE, "a"), _doc())
    elapsed = time.monotonic() - started

    assert elapsed < 0.15
    assert backend.flush(timeout_s=5) is True
    backend.close()


def test_field_sync_drops_failures_and_continues(caplog: pytest.LogCaptureFixture) -> None:
    client = FakeClient(fail=True)
    backend = FieldSync(client)

    backend.push(Change(TASK_DELETE, "a"), _doc())
    backend.push(Change(TASK_DELETE, "b"), _doc())
    backend.flush(timeout_s=5)

    assert [args for _, args in client.calls] == [("a",), ("b",)]
    assert "field sync task.delete failed" in caplog.text
    backend.close()


def test_fetch_delegates_to_client() -> None:
    client = FakeClient()

    assert build_sync_backend("field", client).fetch() == UserData.empty(1)
    assert isinstance(build_sync_backend("document", client), DocumentSync)
    with pytest.raises(ValueError):
        build_sync_backend("carrier-pigeon", client)
