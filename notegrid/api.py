from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from . import __version__
from .api_http import (
    bearer_identity,
    parse_json_body,
    read_body,
    send_envelope,
    send_error_envelope,
    send_json_response,
    send_preflight,
)
from .db import DEFAULT_DB_PATH
from .errors import AuthError, NotegridError, ValidationError
from .identity import is_valid_identity
from .models import Link, LinkUpdate, Task, TaskUpdate, UserData, now_ms
from .store import UserDataStore, open_store

logger = logging.getLogger(__name__)

DEFAULT_MAX_BODY_BYTES = 1048576


@dataclass
class ApiRequest:
    store: UserDataStore
    identity: str | None
    params: dict[str, str]
    body: Any
    now: int


Handler = Callable[[ApiRequest], Any]


def _require_object(body: Any) -> dict[str, Any]:
    if not isinstance(body, dict):
        raise ValidationError()
    return body


def _require_ids(body: Any, key: str) -> list[str]:
    ids = _require_object(body).get(key)
    if not isinstance(ids, list) or not all(isinstance(item, str) for item in ids):
        raise ValidationError()
    return ids


def _get_data(req: ApiRequest) -> Any:
    assert req.identity is not None
    data = req.store.get_user_data(req.identity)
    if data is None:
        data = UserData.empty(req.now)
    return data.to_dict()


def _put_data(req: ApiRequest) -> Any:
    assert req.identity is not None
    incoming = UserData.from_dict(_require_object(req.body), now=req.now)
    return req.store.put_user_data(req.identity, incoming, now=req.now).to_dict()


def _list_tasks(req: ApiRequest) -> Any:
    assert req.identity is not None
    return [task.to_dict() for task in req.store.list_tasks(req.identity)]


def _create_task(req: ApiRequest) -> Any:
    assert req.identity is not None
    body = _require_object(req.body)
    if not isinstance(body.get("id"), str) or not body["id"]:
        raise ValidationError()
    task = Task.from_dict(body, now=req.now)
    return req.store.create_task(req.identity, task, now=req.now).to_dict()


def _update_task(req: ApiRequest) -> Any:
    assert req.identity is not None
    update = TaskUpdate.from_dict(req.body)
    task = req.store.update_task(req.identity, req.params["id"], update, now=req.now)
    return task.to_dict()


def _delete_task(req: ApiRequest) -> Any:
    assert req.identity is not None
    req.store.delete_task(req.identity, req.params["id"], now=req.now)
    return None


def _reorder_tasks(req: ApiRequest) -> Any:
    assert req.identity is not None
    req.store.reorder_tasks(req.identity, _require_ids(req.body, "taskIds"), now=req.now)
    return None


def _list_links(req: ApiRequest) -> Any:
    assert req.identity is not None
    return [link.to_dict() for link in req.store.list_links(req.identity)]


def _create_link(req: ApiRequest) -> Any:
    assert req.identity is not None
    body = _require_object(req.body)
    if not isinstance(body.get("id"), str) or not body["id"]:
        raise ValidationError()
    link = Link.from_dict(body, now=req.now)
    if not link.url.strip():
        raise ValidationError()
    return req.store.create_link(req.identity, link, now=req.now).to_dict()


def _update_link(req: ApiRequest) -> Any:
    assert req.identity is not None
    update = LinkUpdate.from_dict(req.body)
    link = req.store.update_link(req.identity, req.params["id"], update, now=req.now)
    return link.to_dict()


def _delete_link(req: ApiRequest) -> Any:
    assert req.identity is not None
    req.store.delete_link(req.identity, req.params["id"], now=req.now)
    return None


def _reorder_links(req: ApiRequest) -> Any:
    assert req.identity is not None
    req.store.reorder_links(req.identity, _require_ids(req.body, "linkIds"), now=req.now)
    return None


def _exists(req: ApiRequest) -> Any:
    candidate = req.params["uuid"]
    if not is_valid_identity(candidate):
        return {"exists": False}
    return {"exists": req.store.user_exists(candidate.lower())}


def _register(req: ApiRequest) -> Any:
    candidate = _require_object(req.body).get("uuid")
    if not is_valid_identity(candidate):
        raise ValidationError("Invalid UUID format")
    return req.store.register_user(candidate.lower(), now=req.now).to_dict()


def _delete_account(req: ApiRequest) -> Any:
    assert req.identity is not None
    req.store.delete_user(req.identity)
    return None


@dataclass(frozen=True)
class Route:
    method: str
    pattern: re.Pattern[str]
    handler: Handler
    auth: bool = True
    has_body: bool = False


def _route(method: str, path: str, handler: Handler, **kwargs: bool) -> Route:
    regex = re.sub(r":(\w+)", r"(?P<\1>[^/]+)", path)
    return Route(method, re.compile(f"^{regex}$"), handler, **kwargs)


# Order matters: the reorder routes must win over the ":id" routes.
ROUTES = (
    _route("GET", "/api/data", _get_data),
    _route("PUT", "/api/data", _put_data, has_body=True),
    _route("GET", "/api/tasks", _list_tasks),
    _route("POST", "/api/tasks", _create_task, has_body=True),
    _route("PUT", "/api/tasks/reorder", _reorder_tasks, has_body=True),
    _route("PUT", "/api/tasks/:id", _update_task, has_body=True),
    _route("DELETE", "/api/tasks/:id", _delete_task),
    _route("GET", "/api/links", _list_links),
    _route("POST", "/api/links", _create_link, has_body=True),
    _route("PUT", "/api/links/reorder", _reorder_links, has_body=True),
    _route("PUT", "/api/links/:id", _update_link, has_body=True),
    _route("DELETE", "/api/links/:id", _delete_link),
    _route("GET", "/api/exists/:uuid", _exists, auth=False),
    _route("POST", "/api/register", _register, auth=False, has_body=True),
    _route("DELETE", "/api/account", _delete_account),
)


def match_route(method: str, path: str) -> tuple[Route, dict[str, str]] | None:
    for route in ROUTES:
        if route.method != method:
            continue
        match = route.pattern.match(path)
        if match is not None:
            return route, {key: unquote(value) for key, value in match.groupdict().items()}
    return None


def build_api_handler(
    db_path: Path | str | None = None,
    *,
    backend: str = "table",
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
):
    resolved_db = Path(db_path or os.environ.get("NOTEGRID_DB") or DEFAULT_DB_PATH)

    class ApiHandler(BaseHTTPRequestHandler):
        server_version = f"notegrid/{__version__}"

        def log_message(self, format: str, *args: object) -> None:  # noqa: A003
            if os.environ.get("NOTEGRID_API_LOGS") == "1":
                super().log_message(format, *args)

        def _store(self) -> UserDataStore:
            return open_store(resolved_db, backend)

        def _health(self) -> None:
            send_envelope(
                self,
                {"status": "ok", "timestamp": now_ms(), "version": __version__},
            )

        def _dispatch(self, method: str) -> None:
            path = urlparse(self.path).path
            if method == "GET" and path == "/api/health":
                self._health()
                return
            matched = match_route(method, path)
            if matched is None:
                send_error_envelope(self, "Not found", 404)
                return
            route, params = matched
            store: UserDataStore | None = None
            try:
                identity = bearer_identity(self)
                if route.auth and identity is None:
                    raise AuthError()
                body: Any = None
                if route.has_body:
                    body = parse_json_body(read_body(self, max_bytes=max_body_bytes))
                store = self._store()
                data = route.handler(
                    ApiRequest(store=store, identity=identity, params=params, body=body, now=now_ms())
                )
            except NotegridError as exc:
                send_error_envelope(self, exc.message, exc.status)
                return
            except Exception as exc:
                logger.exception("api request failed: %s %s", method, path)
                payload: dict[str, Any] = {"success": False, "error": "Internal server error"}
                if os.environ.get("NOTEGRID_API_DEBUG") == "1":
                    payload["detail"] = str(exc)
                send_json_response(self, payload, status=500)
                return
            finally:
                if store is not None:
                    store.close()
            send_envelope(self, data)

        def do_OPTIONS(self) -> None:  # noqa: N802
            send_preflight(self)

        def do_GET(self) -> None:  # noqa: N802
            self._dispatch("GET")

        def do_POST(self) -> None:  # noqa: N802
            self._dispatch("POST")

        def do_PUT(self) -> None:  # noqa: N802
            self._dispatch("PUT")

        def do_DELETE(self) -> None:  # noqa: N802
            self._dispatch("DELETE")

    return ApiHandler
