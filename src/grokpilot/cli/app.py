"""Unified CLI entry point for grokpilot.

Config precedence: <home>/settings.toml -> <home>/settings.local.toml -> env vars (GROKPILOT_* with __) -> CLI flags.
"""

from __future__ import annotations

import typer

from grokpilot import __version__
from grokpilot.cli.ask import ask
from grokpilot.cli.cookies_cmd import cookies, init
from grokpilot.cli.sessions_cmd import session, status
from grokpilot.cli.settings_cmd import settings_app

APP_HELP = (
    "grokpilot — ask Grok when you're stuck. "
    "Bundles a prompt with files and sends it to grok.com through a real Chrome session. "
    "Config precedence: settings.toml -> settings.local.toml -> env vars (GROKPILOT_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.command("ask")(ask)
app.command("status")(status)
app.command("session")(session)
app.command("cookies")(cookies)
app.command("init")(init)
app.add_typer(settings_app, name="settings")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context, version: bool = typer.Option(False, "--version", help="Show version and exit.")) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"grokpilot {__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()
