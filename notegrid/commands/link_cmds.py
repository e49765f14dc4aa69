from __future__ import annotations

import json

import typer
from rich import print
from rich.markup import escape

from ..models import Link
from ..utils import favicon_for, is_web_url, url_host
from .common import active_engine, fail, resolve_ref, short_id


def _format_link(link: Link) -> str:
    title = escape(link.title) or escape(url_host(link.url)) or "(untitled)"
    return f"[bold]{short_id(link.id)}[/bold] {title} [dim]{escape(link.url)}[/dim]"


def links_list_cmd(*, session_factory, as_json: bool) -> None:
    with active_engine(session_factory) as engine:
        links = engine.links
    if as_json:
        typer.echo(json.dumps([link.to_dict() for link in links], indent=2, ensure_ascii=False))
        return
    if not links:
        print("[yellow]No links[/yellow]")
        return
    for link in links:
        print(_format_link(link))


def links_add_cmd(*, session_factory, url: str, title: str | None) -> None:
    """Quick-save a page: web URLs only, one entry per URL."""

    url = url.strip()
    if not is_web_url(url):
        raise fail("Only http(s) pages can be saved")
    with active_engine(session_factory) as engine:
        if any(link.url == url for link in engine.links):
            raise fail("Link already saved")
        link = engine.add_link(url, (title or "").strip() or url_host(url), favicon_for(url))
    if link is None:
        raise fail("Data not loaded; nothing saved")
    print(f"[green]Saved[/green] {_format_link(link)}")


def links_rm_cmd(*, session_factory, ref: str) -> None:
    with active_engine(session_factory) as engine:
        link = resolve_ref(engine.links, ref, label="Link")
        engine.delete_link(link.id)
    print(f"[green]Deleted[/green] {short_id(link.id)} {escape(link.url)}")
