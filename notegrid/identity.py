from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Any
from uuid import uuid4

from .config import load_config
from .errors import AuthError
from .utils import ensure_path

logger = logging.getLogger(__name__)

IDENTITY_FILE_NAME = "identity"
KEYCHAIN_SERVICE = "notegrid"
KEYCHAIN_ACCOUNT = "identity"

_IDENTITY_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def generate_identity() -> str:
    return str(uuid4())


def is_valid_identity(candidate: Any) -> bool:
    return isinstance(candidate, str) and _IDENTITY_RE.match(candidate) is not None


def _secret_tool_available() -> bool:
    return shutil.which("secret-tool") is not None


def _security_cli_available() -> bool:
    return shutil.which("security") is not None


def store_identity_keychain(identity: str) -> bool:
    if sys.platform.startswith("linux"):
        if not _secret_tool_available():
            return False
        result = subprocess.run(
            [
                "secret-tool",
                "store",
                "--label",
                "notegrid identity",
                "service",
                KEYCHAIN_SERVICE,
                "account",
                KEYCHAIN_ACCOUNT,
            ],
            input=identity.encode("utf-8"),
            capture_output=True,
            check=False,
        )
        return result.returncode == 0
    if sys.platform.startswith("darwin"):
        if not _security_cli_available():
            return False
        result = subprocess.run(
            [
                "security",
                "add-generic-password",
                "-a",
                KEYCHAIN_ACCOUNT,
                "-s",
                KEYCHAIN_SERVICE,
                "-w",
                identity,
                "-U",
            ],
            capture_output=True,
            check=False,
        )
        return result.returncode == 0
    return False


def load_identity_keychain() -> str | None:
    if sys.platform.startswith("linux"):
        if not _secret_tool_available():
            return None
        result = subprocess.run(
            ["secret-tool", "lookup", "service", KEYCHAIN_SERVICE, "account", KEYCHAIN_ACCOUNT],
            capture_output=True,
            check=False,
        )
    elif sys.platform.startswith("darwin"):
        if not _security_cli_available():
            return None
        result = subprocess.run(
            ["security", "find-generic-password", "-a", KEYCHAIN_ACCOUNT, "-s", KEYCHAIN_SERVICE, "-w"],
            capture_output=True,
            check=False,
        )
    else:
        return None
    if result.returncode != 0:
        return None
    return result.stdout.decode("utf-8", errors="ignore").strip() or None


def clear_identity_keychain() -> None:
    if sys.platform.startswith("linux") and _secret_tool_available():
        subprocess.run(
            ["secret-tool", "clear", "service", KEYCHAIN_SERVICE, "account", KEYCHAIN_ACCOUNT],
            capture_output=True,
            check=False,
        )
    elif sys.platform.startswith("darwin") and _security_cli_available():
        subprocess.run(
            ["security", "delete-generic-password", "-a", KEYCHAIN_ACCOUNT, "-s", KEYCHAIN_SERVICE],
            capture_output=True,
            check=False,
        )


class IdentityStore:
    """Durable home for the identity secret on this machine.

    ``file`` mode keeps it in a 0600 file under the state dir. ``keychain`` mode
    prefers the platform secret store and falls back to the file when the
    platform tool is missing.
    """

    def __init__(
        self,
        state_dir: Path | str,
        *,
        key_store: str | None = None,
        cache: Any = None,
    ) -> None:
        self.state_dir = Path(state_dir).expanduser()
        mode = (key_store or load_config().key_store or "file").lower()
        self.key_store = mode if mode in {"file", "keychain"} else "file"
        self.cache = cache

    @property
    def path(self) -> Path:
        return self.state_dir / IDENTITY_FILE_NAME

    def persist(self, identity: str) -> None:
        if not is_valid_identity(identity):
            raise AuthError("Invalid UUID format")
        if self.key_store == "keychain" and store_identity_keychain(identity):
            self._remove_file()
            return
        path = ensure_path(self.path)
        path.write_text(f"{identity}\n")
        os.chmod(path, 0o600)

    def load(self) -> str | None:
        value: str | None = None
        if self.key_store == "keychain":
            value = load_identity_keychain()
        if value is None:
            try:
                value = self.path.read_text().strip() or None
            except FileNotFoundError:
                return None
        if value is not None and not is_valid_identity(value):
            logger.warning("ignoring malformed stored identity")
            return None
        return value

    def clear(self) -> None:
        if self.key_store == "keychain":
            clear_identity_keychain()
        self._remove_file()
        if self.cache is not None:
            self.cache.clear()

    def _remove_file(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
