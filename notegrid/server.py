from __future__ import annotations

import logging
import threading
from http.server import ThreadingHTTPServer
from pathlib import Path

from .api import DEFAULT_MAX_BODY_BYTES, build_api_handler
from .db import DEFAULT_DB_PATH
from .store import STORE_BACKENDS

logger = logging.getLogger(__name__)

DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8787


def make_server(
    host: str = DEFAULT_API_HOST,
    port: int = DEFAULT_API_PORT,
    *,
    db_path: Path | str | None = None,
    backend: str = "table",
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
) -> ThreadingHTTPServer:
    if backend not in STORE_BACKENDS:
        raise ValueError(f"unknown store backend: {backend}")
    handler = build_api_handler(
        db_path or DEFAULT_DB_PATH,
        backend=backend,
        max_body_bytes=max_body_bytes,
    )
    server = ThreadingHTTPServer((host, port), handler)
    server.daemon_threads = True
    return server


def serve(
    host: str = DEFAULT_API_HOST,
    port: int = DEFAULT_API_PORT,
    *,
    db_path: Path | str | None = None,
    backend: str = "table",
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
    background: bool = False,
) -> ThreadingHTTPServer:
    server = make_server(
        host,
        port,
        db_path=db_path,
        backend=backend,
        max_body_bytes=max_body_bytes,
    )
    bound_host, bound_port = server.server_address[:2]
    logger.info("notegrid api listening on %s:%s (%s backend)", bound_host, bound_port, backend)
    if background:
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        return server
    try:
        server.serve_forever()
    finally:
        server.server_close()
    return server
