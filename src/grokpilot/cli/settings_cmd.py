"""CLI commands for inspecting grokpilot settings."""

from __future__ import annotations

import json

import typer

from grokpilot.cli.output import console

settings_app = typer.Typer(help="Inspect grokpilot configuration.")


@settings_app.command("show")
def show_settings() -> None:
    """Display the currently resolved settings."""
    from grokpilot.settings import get_settings

    try:
        settings = get_settings()
    except ValueError as e:
        console.print(f"[red]✗[/red] Settings failed to load: {e}")
        raise typer.Exit(code=1)
    payload = settings.model_dump(mode="json")
    payload["sessions_dir"] = str(settings.sessions_dir)
    payload["profile_dir"] = str(settings.profile_dir)
    console.print_json(json.dumps(payload, indent=2, default=str))
