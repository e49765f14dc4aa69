from __future__ import annotations

import typer
from rich import print
from rich.markup import escape

from ..config import NotegridConfig
from ..server import serve


def serve_cmd(
    *,
    config: NotegridConfig,
    host: str | None,
    port: int | None,
    db_path: str | None,
    backend: str | None,
) -> None:
    """Run the HTTP API in the foreground."""

    resolved_host = host or config.server_host
    resolved_port = port if port is not None else config.server_port
    resolved_backend = backend or config.store_backend
    resolved_db = db_path or config.db_file
    print(
        f"[green]NoteGrid API[/green] on http://{resolved_host}:{resolved_port} "
        f"({resolved_backend} store at {resolved_db})"
    )
    try:
        serve(
            resolved_host,
            resolved_port,
            db_path=resolved_db,
            backend=resolved_backend,
            max_body_bytes=config.max_body_bytes,
        )
    except ValueError as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    except OSError as exc:
        print(f"[red]Failed to bind {resolved_host}:{resolved_port}: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    except KeyboardInterrupt:
        print("[yellow]Stopped[/yellow]")
