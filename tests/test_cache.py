from __future__ import annotations

from pathlib import Path

from notegrid.cache import CACHE_KEY, LocalCache
from notegrid.models import Link, Task, UserData


def test_cache_roundtrip_preserves_order(tmp_path: Path) -> None:
    cache = LocalCache(tmp_path / "state")
    data = UserData(
        tasks=[Task(id="b", title="second", kanban_status="todo"), Task(id="a", title="first", kanban_status=None)],
        links=[Link(id="l", url="https://example.com", created_at=4)],
        created_at=1,
        updated_at=2,
    )

    cache.save(data)
    loaded = cache.load()

    assert cache.path.name == f"{CACHE_KEY}.json"
    assert loaded == data
    assert [task.id for task in loaded.tasks] == ["b", "a"]


def test_missing_cache_loads_none(tmp_path: Path) -> None:
    assert LocalCache(tmp_path).load() is None


def test_corrupt_cache_loads_none(tmp_path: Path) -> None:
    cache = LocalCache(tmp_path)
    cache.path.write_text("{broken")

    assert cache.load() is None


def test_non_object_cache_loads_none(tmp_path: Path) -> None:
    cache = LocalCache(tmp_path)
    cache.path.write_text("[]")

    assert cache.load() is None


def test_save_leaves_no_temp_files(tmp_path: Path) -> None:
    cache = LocalCache(tmp_path)
    cache.save(UserData.empty(1))
    cache.save(UserData.empty(2))

    assert [path.name for path in tmp_path.iterdir()] == [cache.path.name]
    assert cache.load().created_at == 2


def test_clear_is_idempotent(tmp_path: Path) -> None:
    cache = LocalCache(tmp_path)
    cache.save(UserData.empty(1))

    cache.clear()
    cache.clear()

    assert not cache.path.exists()
