"""grokpilot configuration."""

from grokpilot.settings.config import Settings, get_settings, resolve_home_dir

__all__ = ["Settings", "get_settings", "resolve_home_dir"]
