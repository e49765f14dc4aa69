from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/notegrid/config.json").expanduser()

SYNC_MODES = ("document", "field")
STORE_BACKENDS = ("table", "blob")
KEY_STORES = ("file", "keychain")

CONFIG_ENV_OVERRIDES = {
    "api_url": "NOTEGRID_API_URL",
    "sync_mode": "NOTEGRID_SYNC_MODE",
    "debounce_ms": "NOTEGRID_DEBOUNCE_MS",
    "refresh_interval_s": "NOTEGRID_REFRESH_INTERVAL_S",
    "request_timeout_s": "NOTEGRID_REQUEST_TIMEOUT_S",
    "state_dir": "NOTEGRID_STATE_DIR",
    "key_store": "NOTEGRID_KEY_STORE",
    "server_host": "NOTEGRID_SERVER_HOST",
    "server_port": "NOTEGRID_SERVER_PORT",
    "store_backend": "NOTEGRID_STORE_BACKEND",
    "db_path": "NOTEGRID_DB",
    "max_body_bytes": "NOTEGRID_MAX_BODY_BYTES",
}

_INT_KEYS = {"debounce_ms", "refresh_interval_s", "server_port", "max_body_bytes"}
_FLOAT_KEYS = {"request_timeout_s"}
_CHOICE_KEYS = {
    "sync_mode": SYNC_MODES,
    "store_backend": STORE_BACKENDS,
    "key_store": KEY_STORES,
}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("NOTEGRID_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    return config_path


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class NotegridConfig:
    api_url: str = "http://127.0.0.1:8787"
    sync_mode: str = "document"
    debounce_ms: int = 300
    refresh_interval_s: int = 30
    request_timeout_s: float = 5.0
    state_dir: str = "~/.notegrid"
    key_store: str = "file"

    server_host: str = "127.0.0.1"
    server_port: int = 8787
    store_backend: str = "table"
    db_path: str = "~/.notegrid.sqlite"
    max_body_bytes: int = 1048576

    @property
    def state_path(self) -> Path:
        return Path(self.state_dir).expanduser()

    @property
    def db_file(self) -> Path:
        return Path(self.db_path).expanduser()


_CONFIG_FIELDS = frozenset(item.name for item in fields(NotegridConfig))


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_float(value: object, default: float, *, key: str) -> float:
    if value is None:
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid float for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_choice(value: object, default: str, *, key: str) -> str:
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in _CHOICE_KEYS[key]:
        return normalized
    warnings.warn(f"Invalid value for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def _coerce(cfg: NotegridConfig, key: str, value: object) -> None:
    current = getattr(cfg, key)
    if key in _INT_KEYS:
        setattr(cfg, key, _parse_int(value, current, key=key))
    elif key in _FLOAT_KEYS:
        setattr(cfg, key, _parse_float(value, current, key=key))
    elif key in _CHOICE_KEYS:
        setattr(cfg, key, _parse_choice(value, current, key=key))
    elif value is not None:
        setattr(cfg, key, str(value))


def load_config(path: Path | None = None) -> NotegridConfig:
    cfg = NotegridConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
        except json.JSONDecodeError:
            data = {}
        if isinstance(data, dict):
            cfg = _apply_dict(cfg, data)
    cfg = _apply_env(cfg)
    return cfg


def _apply_dict(cfg: NotegridConfig, data: dict[str, Any]) -> NotegridConfig:
    for key, value in data.items():
        if key not in _CONFIG_FIELDS:
            continue
        _coerce(cfg, key, value)
    return cfg


def _apply_env(cfg: NotegridConfig) -> NotegridConfig:
    for key, value in get_env_overrides().items():
        _coerce(cfg, key, value)
    return cfg
