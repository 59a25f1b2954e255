"""grokpilot command-line interface (typer + rich)."""
