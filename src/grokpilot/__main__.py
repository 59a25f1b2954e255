"""Allow ``python -m grokpilot``."""

from grokpilot.cli.app import app

app(prog_name="grokpilot")
