from __future__ import annotations

import typer
from rich import print
from rich.markup import escape

from ..errors import ConflictError, NotegridError, TransportError
from ..identity import generate_identity


def identity_new_cmd() -> None:
    """Print a fresh identity without registering it."""

    print(generate_identity())


def identity_show_cmd(*, session_factory) -> None:
    session = session_factory()
    identity = session.identities.load()
    if identity is None:
        print("[yellow]No identity stored[/yellow]")
        raise typer.Exit(code=1)
    print(identity)


def identity_login_cmd(*, session_factory, identity: str) -> None:
    session = session_factory()
    try:
        engine = session.login(identity)
    except TransportError as exc:
        print(f"[red]Could not reach the server: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    except NotegridError as exc:
        print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc
    try:
        data = engine.data
        tasks = len(data.tasks) if data else 0
        links = len(data.links) if data else 0
        print(f"[green]Signed in[/green] ({tasks} tasks, {links} links)")
    finally:
        session.close()


def identity_logout_cmd(*, session_factory) -> None:
    session = session_factory()
    session.logout()
    print("[green]Signed out; local identity and cache removed[/green]")


def register_cmd(*, session_factory, identity: str | None) -> None:
    session = session_factory()
    try:
        session.register(identity)
    except ConflictError as exc:
        print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc
    except TransportError as exc:
        print(f"[red]Could not reach the server: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    except NotegridError as exc:
        print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc
    registered = session.identity
    session.close()
    print(f"[green]Registered[/green] {registered}")
    print("[yellow]Keep this UUID safe: it is the only way back into your data.[/yellow]")


def delete_account_cmd(*, session_factory, yes: bool) -> None:
    session = session_factory()
    if session.resume() is None:
        print("[red]No identity stored[/red]")
        raise typer.Exit(code=1)
    if not yes and not typer.confirm("Delete this account and all of its tasks and links?"):
        session.close()
        raise typer.Exit(code=1)
    try:
        session.delete_account()
    except NotegridError as exc:
        print(f"[red]Failed to delete account: {escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc
    print("[green]Account deleted[/green]")
