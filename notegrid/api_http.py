from __future__ import annotations

import json
import re
from http.server import BaseHTTPRequestHandler
from typing import Any

from .errors import PayloadTooLargeError, ValidationError
from .identity import is_valid_identity

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, PUT, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

_BEARER_RE = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def _send_cors_headers(handler: BaseHTTPRequestHandler) -> None:
    for name, value in CORS_HEADERS.items():
        handler.send_header(name, value)


def send_json_response(
    handler: BaseHTTPRequestHandler,
    payload: dict[str, Any],
    status: int = 200,
) -> None:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json; charset=utf-8")
    handler.send_header("Content-Length", str(len(body)))
    _send_cors_headers(handler)
    handler.end_headers()
    handler.wfile.write(body)


def send_envelope(handler: BaseHTTPRequestHandler, data: Any = None, status: int = 200) -> None:
    send_json_response(handler, {"success": True, "data": data}, status=status)


def send_error_envelope(handler: BaseHTTPRequestHandler, error: str, status: int) -> None:
    send_json_response(handler, {"success": False, "error": error}, status=status)


def send_preflight(handler: BaseHTTPRequestHandler) -> None:
    handler.send_response(204)
    _send_cors_headers(handler)
    handler.send_header("Access-Control-Max-Age", "86400")
    handler.send_header("Content-Length", "0")
    handler.end_headers()


def read_body(handler: BaseHTTPRequestHandler, *, max_bytes: int) -> bytes:
    try:
        length = int(handler.headers.get("Content-Length", "0") or 0)
    except ValueError as exc:
        raise ValidationError() from exc
    if length <= 0:
        return b""
    if length > max_bytes:
        raise PayloadTooLargeError()
    return handler.rfile.read(length)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def parse_json_body(raw: bytes) -> Any:
    if not raw:
        raise ValidationError()
    try:
        return json.loads(raw.decode("utf-8"), parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError) as exc:
        raise ValidationError() from exc


def bearer_identity(handler: BaseHTTPRequestHandler) -> str | None:
    header = handler.headers.get("Authorization")
    if not header:
        return None
    match = _BEARER_RE.match(header.strip())
    if match is None:
        return None
    candidate = match.group(1).strip()
    return candidate.lower() if is_valid_identity(candidate) else None
