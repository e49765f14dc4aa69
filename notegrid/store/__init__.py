from __future__ import annotations

from pathlib import Path

from ._store import TableStore
from .base import UserDataStore
from .blob import BlobStore

STORE_BACKENDS: dict[str, type[UserDataStore]] = {
    "table": TableStore,
    "blob": BlobStore,
}


def open_store(db_path: Path | str, backend: str = "table") -> UserDataStore:
    try:
        store_cls = STORE_BACKENDS[backend]
    except KeyError:
        raise ValueError(f"unknown store backend: {backend}") from None
    return store_cls(db_path)


__all__ = [
    "STORE_BACKENDS",
    "BlobStore",
    "TableStore",
    "UserDataStore",
    "open_store",
]
