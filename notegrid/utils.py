from __future__ import annotations

import datetime as dt
from pathlib import Path
from urllib.parse import urlparse

FAVICON_SERVICE = "https://www.google.com/s2/favicons?domain={host}&sz=64"


def ensure_path(path: str | Path) -> Path:
    resolved = Path(path).expanduser()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return resolved


def is_web_url(url: str) -> bool:
    return url.startswith("http://") or url.startswith("https://")


def url_host(url: str) -> str:
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def favicon_for(url: str) -> str:
    host = url_host(url)
    if not host:
        return ""
    return FAVICON_SERVICE.format(host=host)


def iso_from_ms(value: int) -> str:
    stamp = dt.datetime.fromtimestamp(value / 1000, tz=dt.UTC)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
