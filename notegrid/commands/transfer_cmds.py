from __future__ import annotations

import json
import sys
from pathlib import Path

import typer
from rich import print

from .common import active_engine, fail


def export_cmd(*, session_factory, output: str) -> None:
    """Write the backup document; '-' means stdout."""

    with active_engine(session_factory) as engine:
        document = engine.export_data()
    if document is None:
        raise fail("Data not loaded; nothing to export")
    payload = json.dumps(document, indent=2, ensure_ascii=False)
    if output == "-":
        typer.echo(payload)
        return
    try:
        Path(output).expanduser().write_text(payload + "\n", encoding="utf-8")
    except OSError as exc:
        raise fail(f"Failed to write {output}: {exc}") from exc
    print(
        f"[green]Exported[/green] {len(document['tasks'])} tasks and "
        f"{len(document['links'])} links to {output}"
    )


def import_cmd(*, session_factory, input_file: str, yes: bool) -> None:
    """Replace all tasks and links with the contents of a backup."""

    if input_file == "-":
        if not yes:
            raise fail("Reading from stdin needs --yes")
        text = sys.stdin.read()
    else:
        try:
            text = Path(input_file).expanduser().read_text(encoding="utf-8")
        except OSError as exc:
            raise fail(f"Failed to read {input_file}: {exc}") from exc
    if not yes and not typer.confirm("Importing replaces all current tasks and links. Continue?"):
        raise typer.Exit(code=1)
    with active_engine(session_factory) as engine:
        result = engine.import_data(text)
    if not result.success:
        raise fail(result.error)
    print(f"[green]Imported[/green] {result.task_count} tasks and {result.link_count} links")
