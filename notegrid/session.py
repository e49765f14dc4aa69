from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .cache import LocalCache
from .client.api_client import ApiClient
from .client.sync import SyncBackend, build_sync_backend
from .config import NotegridConfig, load_config
from .engine import ReconciliationEngine
from .errors import AuthError
from .identity import IdentityStore, generate_identity, is_valid_identity

logger = logging.getLogger(__name__)


class Session:
    """Ties an identity to a running engine.

    At most one identity is active. Switching identities stops the previous
    engine, so no refresh timer outlives its session.
    """

    def __init__(
        self,
        config: NotegridConfig | None = None,
        *,
        client_factory: Callable[..., Any] = ApiClient,
        start_refresh: bool = True,
    ) -> None:
        self.config = config or load_config()
        self.cache = LocalCache(self.config.state_path)
        self.identities = IdentityStore(
            self.config.state_path,
            key_store=self.config.key_store,
            cache=self.cache,
        )
        self._client_factory = client_factory
        self._start_refresh = start_refresh
        self.identity: str | None = None
        self.client: Any = None
        self.engine: ReconciliationEngine | None = None

    @property
    def authenticated(self) -> bool:
        return self.engine is not None

    def _client(self, identity: str | None) -> Any:
        return self._client_factory(
            self.config.api_url,
            identity,
            timeout_s=self.config.request_timeout_s,
        )

    def _backend(self, client: Any) -> SyncBackend:
        return build_sync_backend(
            self.config.sync_mode,
            client,
            debounce_ms=self.config.debounce_ms,
        )

    def _activate(self, identity: str) -> ReconciliationEngine:
        self._deactivate()
        self.identity = identity
        self.client = self._client(identity)
        self.engine = ReconciliationEngine(
            self._backend(self.client),
            self.cache,
            refresh_interval_s=self.config.refresh_interval_s if self._start_refresh else 0,
        )
        self.engine.start()
        return self.engine

    def _deactivate(self) -> None:
        engine = self.engine
        self.engine = None
        self.identity = None
        self.client = None
        if engine is not None:
            engine.stop()
            engine.backend.close()

    def check_exists(self, identity: str) -> bool:
        if not is_valid_identity(identity):
            return False
        return self._client(None).check_exists(identity.lower())

    def login(self, identity: str) -> ReconciliationEngine:
        candidate = identity.strip()
        if not is_valid_identity(candidate):
            raise AuthError("Invalid UUID format")
        candidate = candidate.lower()
        if not self._client(None).check_exists(candidate):
            raise AuthError("UUID not found")
        if self.identities.load() != candidate:
            # Another identity's cached document must not leak into this one.
            self.cache.clear()
        self.identities.persist(candidate)
        return self._activate(candidate)

    def register(self, identity: str | None = None) -> ReconciliationEngine:
        candidate = (identity or generate_identity()).strip()
        if not is_valid_identity(candidate):
            raise AuthError("Invalid UUID format")
        candidate = candidate.lower()
        self._client(None).register_identity(candidate)
        self.cache.clear()
        self.identities.persist(candidate)
        return self._activate(candidate)

    def resume(self) -> ReconciliationEngine | None:
        identity = self.identities.load()
        if identity is None:
            return None
        return self._activate(identity.lower())

    def logout(self) -> None:
        self._deactivate()
        self.identities.clear()

    def delete_account(self) -> None:
        client = self.client
        if client is None:
            raise AuthError()
        # Pending edits go out first so they cannot recreate the record afterwards.
        self._deactivate()
        client.delete_account()
        logger.info("account deleted")
        self.identities.clear()

    def close(self) -> None:
        self._deactivate()
