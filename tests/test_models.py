from __future__ import annotations

import pytest

from notegrid.errors import ValidationError
from notegrid.models import (
    COLORS,
    DEFAULT_COLOR,
    MISSING,
    Link,
    LinkUpdate,
    Task,
    TaskUpdate,
    UserData,
)


def test_task_wire_keys_are_camel_case() -> None:
    task = Task(id="t1", title="Write", kanban_status="todo", created_at=1, updated_at=2)

    payload = task.to_dict()

    assert payload["kanbanStatus"] == "todo"
    assert payload["createdAt"] == 1
    assert payload["updatedAt"] == 2
    assert "kanban_status" not in payload


def test_task_from_dict_accepts_legacy_grouping_keys() -> None:
    task = Task.from_dict({"id": "t1", "q": "decide", "kanban": "done"}, now=10)

    assert task.quadrant == "decide"
    assert task.kanban_status == "done"


def test_task_from_dict_defaults_unusable_values() -> None:
    task = Task.from_dict(
        {
            "title": 5,
            "tags": ["ok", 3, None],
            "color": "#123456",
            "quadrant": "later",
            "completed": "yes",
            "createdAt": "yesterday",
        },
        now=99,
    )

    assert task.id
    assert task.title == ""
    assert task.tags == ["ok"]
    assert task.color == DEFAULT_COLOR
    assert task.quadrant is None
    assert task.completed is False
    assert task.created_at == 99
    assert task.updated_at == 99


def test_user_data_migrates_tasks_without_kanban_field() -> None:
    raw = {
        "tasks": [
            {"id": "old", "title": "a", "updatedAt": 5},
            {"id": "new", "title": "b", "kanbanStatus": "todo", "updatedAt": 5},
        ],
        "links": [],
        "createdAt": 1,
        "updatedAt": 5,
    }

    data = UserData.from_dict(raw, now=1000)

    assert data.legacy is True
    assert data.find_task("old").kanban_status is None
    assert data.find_task("old").updated_at == 1000
    assert data.find_task("new").updated_at == 5
    assert data.updated_at == 1000


def test_user_data_without_legacy_tasks_keeps_timestamps() -> None:
    raw = {"tasks": [{"id": "t", "kanbanStatus": None, "updatedAt": 5}], "updatedAt": 7}

    data = UserData.from_dict(raw, now=1000)

    assert data.legacy is False
    assert data.updated_at == 7


def test_user_data_rejects_non_object() -> None:
    with pytest.raises(ValidationError):
        UserData.from_dict(["not", "a", "document"])  # type: ignore[arg-type]


def test_task_update_distinguishes_missing_from_none() -> None:
    update = TaskUpdate.from_dict({"quadrant": None, "title": "x"})

    assert update.quadrant is None
    assert update.note is MISSING
    assert update.to_dict() == {"quadrant": None, "title": "x"}


def test_task_update_apply_only_touches_present_fields() -> None:
    task = Task(id="t", title="old", note="keep", quadrant="do", updated_at=1)

    updated = TaskUpdate(title="new", quadrant=None).apply(task, now=50)

    assert updated.title == "new"
    assert updated.note == "keep"
    assert updated.quadrant is None
    assert updated.updated_at == 50
    assert task.title == "old"


def test_task_update_reads_legacy_keys() -> None:
    update = TaskUpdate.from_dict({"q": "delegate", "kanban": "backlog"})

    assert update.quadrant == "delegate"
    assert update.kanban_status == "backlog"


@pytest.mark.parametrize(
    "fields",
    [
        {"color": "#000000"},
        {"quadrant": "someday"},
        {"kanban_status": "blocked"},
        {"completed": "true"},
        {"tags": ["a", 1]},
        {"title": None},
    ],
)
def test_task_update_rejects_invalid_values(fields: dict) -> None:
    with pytest.raises(ValidationError):
        TaskUpdate(**fields)


def test_empty_task_update() -> None:
    assert TaskUpdate().is_empty()
    assert TaskUpdate.from_dict({}).to_dict() == {}
    assert not TaskUpdate(color=COLORS[3]).is_empty()


def test_link_update_rejects_blank_url() -> None:
    with pytest.raises(ValidationError):
        LinkUpdate(url="   ")


def test_link_update_apply() -> None:
    link = Link(id="l", url="https://a.example", title="A", created_at=3)

    updated = LinkUpdate.from_dict({"title": "B"}).apply(link)

    assert updated.title == "B"
    assert updated.url == "https://a.example"
    assert updated.created_at == 3


def test_missing_sentinel_is_falsy() -> None:
    assert not MISSING
    assert repr(MISSING) == "MISSING"
    assert MISSING is not None
