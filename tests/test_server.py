from __future__ import annotations

from pathlib import Path

import pytest

from notegrid.client.api_client import ApiClient
from notegrid.server import make_server, serve


def test_make_server_rejects_unknown_backend(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="unknown store backend"):
        make_server("127.0.0.1", 0, db_path=tmp_path / "x.sqlite", backend="memory")


@pytest.mark.parametrize("backend", ["table", "blob"])
def test_serve_in_background(tmp_path: Path, backend: str) -> None:
    server = serve("127.0.0.1", 0, db_path=tmp_path / "api.sqlite", backend=backend, background=True)
    try:
        port = server.server_address[1]
        client = ApiClient(f"127.0.0.1:{port}")
        assert client.health()["status"] == "ok"
    finally:
        server.shutdown()
        server.server_close()
