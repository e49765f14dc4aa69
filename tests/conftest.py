from __future__ import annotations

import threading
from collections.abc import Iterator
from http.server import HTTPServer
from pathlib import Path

import pytest

from notegrid.api import build_api_handler
from notegrid.config import CONFIG_ENV_OVERRIDES


@pytest.fixture(autouse=True)
def _isolate_notegrid_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for env_var in CONFIG_ENV_OVERRIDES.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.delenv("NOTEGRID_API_DEBUG", raising=False)
    monkeypatch.delenv("NOTEGRID_API_LOGS", raising=False)
    monkeypatch.setenv("NOTEGRID_CONFIG", str(tmp_path / "config" / "config.json"))
    monkeypatch.setenv("NOTEGRID_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("NOTEGRID_DB", str(tmp_path / "server.sqlite"))
    monkeypatch.setenv("NOTEGRID_KEY_STORE", "file")


def start_api_server(db_path: Path, backend: str = "table", **kwargs) -> tuple[HTTPServer, int]:
    handler = build_api_handler(db_path, backend=backend, **kwargs)
    server = HTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, int(server.server_address[1])


@pytest.fixture
def api_server(tmp_path: Path) -> Iterator:
    started: list[HTTPServer] = []

    def _start(backend: str = "table", **kwargs) -> str:
        server, port = start_api_server(tmp_path / f"api-{backend}.sqlite", backend, **kwargs)
        started.append(server)
        return f"http://127.0.0.1:{port}"

    yield _start
    for server in started:
        server.shutdown()
        server.server_close()


@pytest.fixture(params=["table", "blob"])
def api_url(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[str]:
    server, port = start_api_server(tmp_path / "api.sqlite", backend=request.param)
    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        server.shutdown()
        server.server_close()
