"""grokpilot — ask grok.com from the terminal by driving a real Chrome session."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("grokpilot")
except Exception:
    __version__ = "0.0.0"
