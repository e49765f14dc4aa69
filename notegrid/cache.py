from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from .errors import ValidationError
from .models import UserData
from .utils import ensure_path

logger = logging.getLogger(__name__)

CACHE_KEY = "notegrid_data"


class LocalCache:
    """Last known server state, one JSON file per client install."""

    def __init__(self, state_dir: Path | str, *, key: str = CACHE_KEY) -> None:
        self.path = Path(state_dir).expanduser() / f"{key}.json"

    def load(self) -> UserData | None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return UserData.from_dict(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("discarding unreadable cache %s", self.path, exc_info=exc)
            return None

    def save(self, data: UserData) -> None:
        path = ensure_path(self.path)
        body = json.dumps(data.to_dict(), ensure_ascii=False)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(body)
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
