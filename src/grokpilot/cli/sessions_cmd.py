"""CLI commands for reviewing past runs."""

from __future__ import annotations

import typer

from grokpilot.cli.output import console, print_bundle, print_session_detail, print_session_list


def status(
    hours: float = typer.Option(72, "--hours", min=0, help="Look back this many hours."),
    clear: bool = typer.Option(False, "--clear", help="Delete session files older than --hours."),
) -> None:
    """List recent sessions, or clear old ones."""
    from grokpilot.store import build_session_store

    store = build_session_store()
    if clear:
        removed = store.clear(hours)
        console.print(f"[dim]  Cleared {removed} session file(s) older than {hours:g}h[/dim]")
        return
    print_session_list(store.list(hours))


def session(
    session_id: str = typer.Argument(..., help="16-character session ID."),
    render_bundle: bool = typer.Option(False, "--render-bundle", help="Print the bundle sent for this session."),
) -> None:
    """Show details and the answer for one session."""
    from grokpilot.exceptions import InvalidSessionId
    from grokpilot.store import build_session_store

    store = build_session_store()
    try:
        record = store.load(session_id)
    except InvalidSessionId as exc:
        console.print(f"[red]  {exc}[/red]")
        raise typer.Exit(code=1)
    if record is None:
        console.print(f"[red]  Session not found: {session_id}[/red]")
        raise typer.Exit(code=1)

    print_session_detail(record)
    if render_bundle:
        text = store.load_bundle(session_id)
        if text:
            print_bundle(text)
        else:
            console.print("[dim]  Bundle file not found.[/dim]")
