from __future__ import annotations

from .api_client import ApiClient
from .sync import SYNC_MODES, Change, DocumentSync, FieldSync, SyncBackend, build_sync_backend

__all__ = [
    "SYNC_MODES",
    "ApiClient",
    "Change",
    "DocumentSync",
    "FieldSync",
    "SyncBackend",
    "build_sync_backend",
]
