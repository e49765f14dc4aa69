from __future__ import annotations

import logging

import typer
from rich import print

from . import __version__
from .commands.common import config_or_exit, session_from_config
from .commands.identity_cmds import (
    delete_account_cmd,
    identity_login_cmd,
    identity_logout_cmd,
    identity_new_cmd,
    identity_show_cmd,
    register_cmd,
)
from .commands.link_cmds import links_add_cmd, links_list_cmd, links_rm_cmd
from .commands.server_cmds import serve_cmd
from .commands.task_cmds import (
    tasks_add_cmd,
    tasks_done_cmd,
    tasks_list_cmd,
    tasks_move_cmd,
    tasks_rm_cmd,
    tasks_update_cmd,
)
from .commands.transfer_cmds import export_cmd, import_cmd
from .session import Session

app = typer.Typer(help="notegrid: tasks and links behind a single secret UUID")
identity_app = typer.Typer(help="Manage the identity stored on this machine")
tasks_app = typer.Typer(help="List and edit tasks")
links_app = typer.Typer(help="List and edit saved links")
app.add_typer(identity_app, name="identity")
app.add_typer(tasks_app, name="tasks")
app.add_typer(links_app, name="links")


def _session() -> Session:
    return session_from_config()


@app.callback()
def _configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log sync activity"),
) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("version")
def version() -> None:
    """Print version."""

    print(__version__)


@app.command("serve")
def serve(
    host: str = typer.Option(None, help="Bind host (default from config)"),
    port: int = typer.Option(None, help="Bind port (default from config)"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    backend: str = typer.Option(None, help="Store backend: table or blob"),
) -> None:
    """Run the NoteGrid HTTP API."""

    serve_cmd(config=config_or_exit(), host=host, port=port, db_path=db_path, backend=backend)


@identity_app.command("new")
def identity_new() -> None:
    """Generate a new identity (not registered)."""

    identity_new_cmd()


@identity_app.command("show")
def identity_show() -> None:
    """Print the stored identity."""

    identity_show_cmd(session_factory=_session)


@identity_app.command("login")
def identity_login(
    identity: str = typer.Argument(..., help="Existing identity UUID"),
) -> None:
    """Sign in with an existing identity."""

    identity_login_cmd(session_factory=_session, identity=identity)


@identity_app.command("logout")
def identity_logout() -> None:
    """Forget the identity and the local cache."""

    identity_logout_cmd(session_factory=_session)


@app.command("register")
def register(
    identity: str = typer.Option(None, "--uuid", help="Register this UUID instead of a new one"),
) -> None:
    """Create a new account and sign in."""

    register_cmd(session_factory=_session, identity=identity)


@app.command("delete-account")
def delete_account(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete the account and everything in it."""

    delete_account_cmd(session_factory=_session, yes=yes)


@tasks_app.command("list")
def tasks_list(
    view: str = typer.Option("list", help="list, matrix or kanban"),
    show_completed: bool = typer.Option(True, "--completed/--open", help="Include completed tasks"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """Show tasks."""

    tasks_list_cmd(session_factory=_session, view=view, show_completed=show_completed, as_json=as_json)


@tasks_app.command("add")
def tasks_add(
    title: str = typer.Argument(..., help="Task title"),
    note: str = typer.Option(None, help="Longer note"),
    tags: list[str] = typer.Option(None, "--tag", help="Tag (repeatable)"),
    color: str = typer.Option(None, help="Color name or hex"),
    quadrant: str = typer.Option(None, help="do, decide, delegate, delete"),
    kanban: str = typer.Option(None, help="backlog, todo, in-progress, done"),
) -> None:
    """Add a task."""

    tasks_add_cmd(
        session_factory=_session,
        title=title,
        note=note,
        tags=tags,
        color=color,
        quadrant=quadrant,
        kanban=kanban,
    )


@tasks_app.command("update")
def tasks_update(
    ref: str = typer.Argument(..., help="Task id or id prefix"),
    title: str = typer.Option(None, help="New title"),
    note: str = typer.Option(None, help="New note"),
    tags: list[str] = typer.Option(None, "--tag", help="Replace tags (repeatable)"),
    color: str = typer.Option(None, help="Color name or hex"),
    quadrant: str = typer.Option(None, help="Quadrant, or 'none' to clear"),
    kanban: str = typer.Option(None, help="Kanban status, or 'none' to clear"),
) -> None:
    """Edit a task."""

    tasks_update_cmd(
        session_factory=_session,
        ref=ref,
        title=title,
        note=note,
        tags=tags,
        color=color,
        quadrant=quadrant,
        kanban=kanban,
    )


@tasks_app.command("done")
def tasks_done(
    ref: str = typer.Argument(..., help="Task id or id prefix"),
    undo: bool = typer.Option(False, "--undo", help="Mark as not completed"),
) -> None:
    """Mark a task completed."""

    tasks_done_cmd(session_factory=_session, ref=ref, undo=undo)


@tasks_app.command("rm")
def tasks_rm(ref: str = typer.Argument(..., help="Task id or id prefix")) -> None:
    """Delete a task."""

    tasks_rm_cmd(session_factory=_session, ref=ref)


@tasks_app.command("move")
def tasks_move(
    ref: str = typer.Argument(..., help="Task id or id prefix"),
    group: str = typer.Option(..., "--group", help="quadrant, kanban_status, color or completed"),
    value: str = typer.Option(..., "--to", help="Target group value ('none' for empty)"),
    index: int = typer.Option(0, "--index", help="Position inside the target group"),
) -> None:
    """Move a task into a group at a position."""

    tasks_move_cmd(session_factory=_session, ref=ref, group=group, value=value, index=index)


@links_app.command("list")
def links_list(as_json: bool = typer.Option(False, "--json", help="Print JSON")) -> None:
    """Show saved links."""

    links_list_cmd(session_factory=_session, as_json=as_json)


@links_app.command("add")
def links_add(
    url: str = typer.Argument(..., help="Page URL"),
    title: str = typer.Option(None, help="Title (defaults to the host)"),
) -> None:
    """Save a link."""

    links_add_cmd(session_factory=_session, url=url, title=title)


@links_app.command("rm")
def links_rm(ref: str = typer.Argument(..., help="Link id or id prefix")) -> None:
    """Delete a link."""

    links_rm_cmd(session_factory=_session, ref=ref)


@app.command("export")
def export(output: str = typer.Argument("-", help="Output file path (use '-' for stdout)")) -> None:
    """Export tasks and links as a backup document."""

    export_cmd(session_factory=_session, output=output)


@app.command("import")
def import_(
    input_file: str = typer.Argument(..., help="Input JSON file (use '-' for stdin)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Replace tasks and links from a backup document."""

    import_cmd(session_factory=_session, input_file=input_file, yes=yes)


def main() -> None:
    app()
