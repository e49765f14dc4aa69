from __future__ import annotations

import http.client
import json
from http.client import HTTPConnection, HTTPSConnection
from typing import Any
from urllib.parse import urlparse

from ..errors import TransportError, error_for_status

_SNIPPET_BYTES = 240


def build_base_url(address: str) -> str:
    trimmed = address.strip().rstrip("/")
    if not trimmed:
        return ""
    parsed = urlparse(trimmed)
    if parsed.scheme:
        return trimmed
    return f"http://{trimmed}"


def _connection(url: str, timeout_s: float) -> tuple[HTTPConnection, str]:
    parsed = urlparse(url)
    if not parsed.hostname:
        raise TransportError(f"missing hostname in {url!r}")
    if parsed.scheme == "https":
        conn: HTTPConnection = HTTPSConnection(parsed.hostname, parsed.port or 443, timeout=timeout_s)
    else:
        conn = HTTPConnection(parsed.hostname, parsed.port or 80, timeout=timeout_s)
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    return conn, path


def _decode(raw: bytes) -> dict[str, Any] | None:
    if not raw:
        return None
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        snippet = raw[:_SNIPPET_BYTES].decode("utf-8", errors="replace").strip()
        return {"error": f"non_json_response: {snippet}" if snippet else "non_json_response"}
    if isinstance(payload, dict):
        return payload
    return {"error": f"unexpected_json_type: {type(payload).__name__}"}


def request_json(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    body: Any = None,
    timeout_s: float = 5.0,
) -> tuple[int, dict[str, Any] | None]:
    """Send one JSON request and return ``(status, payload)``.

    The connection is always closed. Anything that stops a reply from arriving
    raises ``TransportError``; a reply that is not a JSON object becomes an
    ``error`` payload.
    """
    conn, path = _connection(url, timeout_s)
    request_headers = {"Accept": "application/json"}
    body_bytes = None
    if body is not None:
        body_bytes = json.dumps(body, ensure_ascii=False).encode("utf-8")
        request_headers["Content-Type"] = "application/json"
        request_headers["Content-Length"] = str(len(body_bytes))
    if headers:
        request_headers.update(headers)
    try:
        conn.request(method, path, body=body_bytes, headers=request_headers)
        resp = conn.getresponse()
        status = int(resp.status)
        raw = resp.read()
    except (OSError, http.client.HTTPException) as exc:
        raise TransportError(f"{method} {path} failed: {exc}") from exc
    finally:
        conn.close()
    return status, _decode(raw)


def unwrap_envelope(status: int, payload: dict[str, Any] | None, *, label: str) -> Any:
    """Return ``data`` from a ``{success, data|error}`` reply or raise its typed error."""
    if payload is None:
        if 200 <= status < 300:
            return None
        raise error_for_status(status, None)
    if status >= 400 or payload.get("success") is False:
        error = payload.get("error")
        raise error_for_status(status, error if isinstance(error, str) else None)
    if "success" not in payload:
        raise TransportError(f"{label}: unexpected response")
    return payload.get("data")
