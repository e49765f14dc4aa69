from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any, Protocol, TypeVar

import typer
from rich import print
from rich.markup import escape

from ..config import NotegridConfig, load_config, read_config_file
from ..engine import ReconciliationEngine
from ..models import COLOR_NAMES, COLORS
from ..session import Session

NONE_WORDS = {"none", "null", "-", ""}


class _HasId(Protocol):
    id: str


T = TypeVar("T", bound=_HasId)


def config_or_exit() -> NotegridConfig:
    try:
        read_config_file()
    except ValueError as exc:
        print(f"[red]Invalid config file: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    return load_config()


def session_from_config(config: NotegridConfig | None = None) -> Session:
    return Session(config or config_or_exit(), start_refresh=False)


@contextmanager
def active_engine(session_factory) -> Iterator[ReconciliationEngine]:
    """Resume the stored identity for one command, flushing edits on exit."""

    session = session_factory()
    engine = session.resume()
    if engine is None:
        print("[red]No identity stored. Run `notegrid identity login <uuid>` or `notegrid register`.[/red]")
        raise typer.Exit(code=1)
    try:
        yield engine
    finally:
        session.close()


def short_id(value: str) -> str:
    return value[:8]


def resolve_ref(items: Sequence[T], ref: str, *, label: str) -> T:
    """Find an item by full id or by an unambiguous id prefix."""

    exact = [item for item in items if item.id == ref]
    if exact:
        return exact[0]
    matches = [item for item in items if item.id.startswith(ref)] if ref else []
    if len(matches) == 1:
        return matches[0]
    if matches:
        print(f"[red]{label} id {ref} is ambiguous[/red]")
    else:
        print(f"[red]{label} {ref} not found[/red]")
    raise typer.Exit(code=1)


def parse_color(value: str) -> str:
    lowered = value.strip().lower()
    if lowered in COLORS:
        return lowered
    for hex_value, name in COLOR_NAMES.items():
        if name.lower() == lowered:
            return hex_value
    names = ", ".join(name.lower() for name in COLOR_NAMES.values())
    print(f"[red]Unknown color {value!r} (use one of: {names})[/red]")
    raise typer.Exit(code=1)


def parse_optional(value: str, choices: Sequence[str], *, label: str) -> str | None:
    lowered = value.strip().lower()
    if lowered in NONE_WORDS:
        return None
    if lowered in choices:
        return lowered
    print(f"[red]Invalid {label} {value!r} (use one of: {', '.join(choices)}, none)[/red]")
    raise typer.Exit(code=1)


def parse_bool(value: str, *, label: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "done"}:
        return True
    if lowered in {"0", "false", "no", "open"}:
        return False
    print(f"[red]Invalid {label} {value!r} (use true or false)[/red]")
    raise typer.Exit(code=1)


def fail(message: Any) -> typer.Exit:
    print(f"[red]{escape(str(message))}[/red]")
    return typer.Exit(code=1)
