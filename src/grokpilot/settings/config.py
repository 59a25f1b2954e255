"""Configuration loader for grokpilot using Pydantic settings.

Config precedence (highest wins):
  1. CLI flags / explicit values
  2. Environment variables (GROKPILOT_* with __ for nesting)
  3. <home>/settings.local.toml
  4. <home>/settings.toml

``<home>`` is ``$GROK_HOME_DIR`` when set (must be absolute), else ``~/.grok``.
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

HOME_ENV_VAR = "GROK_HOME_DIR"
DEFAULT_URL = "https://grok.com"


def resolve_home_dir() -> Path:
    """Return the grokpilot home directory (cookies, sessions, profile, config)."""
    env_dir = os.getenv(HOME_ENV_VAR)
    if env_dir:
        if not os.path.isabs(env_dir) or "\0" in env_dir:
            raise ValueError(f"Invalid {HOME_ENV_VAR}: must be an absolute path. Got: {env_dir!r}")
        return Path(env_dir)
    return Path.home() / ".grok"


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class BrowserSettings(BaseSettings):
    """Chrome launch and session-lifetime settings."""

    model_config = SettingsConfigDict(env_prefix="GROKPILOT_BROWSER__")

    url: str = DEFAULT_URL
    headless: bool = False
    chrome_path: str = ""
    timeout_ms: int = 120_000
    window_size: str = "1280,800"
    connect_attempts: int = 12
    connect_retry_sec: float = 0.6
    launch_settle_sec: float = 1.2
    navigation_timeout_ms: int = 15_000
    post_navigation_settle_sec: float = 2.5
    apply_stealth_scripts: bool = True


class ChallengeSettings(BaseSettings):
    """Challenge detection and handling timings."""

    model_config = SettingsConfigDict(env_prefix="GROKPILOT_CHALLENGE__")

    self_clear_timeout_sec: float = 30.0
    self_clear_poll_sec: float = 1.0
    puzzle_settle_sec: float = 2.0
    captcha_settle_sec: float = 1.5
    max_rounds: int = 3
    round_pause_sec: float = 1.0


class CaptureSettings(BaseSettings):
    """Response capture heuristics."""

    model_config = SettingsConfigDict(env_prefix="GROKPILOT_CAPTURE__")

    response_timeout_ms: int = 300_000
    poll_interval_sec: float = 0.3
    stability_threshold: int = 3
    busy_grace_sec: float = 4.0
    min_text_length: int = 20
    fallback_min_length: int = 50
    snippet_chars: int = 500
    dom_hint_interval_sec: float = 10.0
    image_poll_sec: float = 1.0


class InteractionSettings(BaseSettings):
    """Bounded waits used by the interaction driver."""

    model_config = SettingsConfigDict(env_prefix="GROKPILOT_INTERACTION__")

    input_timeout_sec: float = 30.0
    input_retry_timeout_sec: float = 15.0
    input_poll_sec: float = 1.0
    submit_timeout_sec: float = 12.0
    submit_poll_sec: float = 0.4
    toggle_settle_sec: float = 0.5
    post_submit_settle_sec: float = 1.5


class CookieSettings(BaseSettings):
    """Credential resolution configuration."""

    model_config = SettingsConfigDict(env_prefix="GROKPILOT_COOKIES__")

    domains: list[str] = Field(default_factory=lambda: ["grok.com", "x.com"])
    keychain_timeout_sec: float = 5.0


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root grokpilot settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="GROKPILOT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    home_dir: Path = Field(default_factory=resolve_home_dir)
    verbose: bool = False

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    challenge: ChallengeSettings = Field(default_factory=ChallengeSettings)
    capture: CaptureSettings = Field(default_factory=CaptureSettings)
    interaction: InteractionSettings = Field(default_factory=InteractionSettings)
    cookies: CookieSettings = Field(default_factory=CookieSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        home = Path(values.get("home_dir") or resolve_home_dir())
        defaults = _load_toml(home / "settings.toml")
        local_overrides = _load_toml(home / "settings.local.toml")

        # Merge: defaults < local < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, local_overrides, values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @property
    def sessions_dir(self) -> Path:
        return self.home_dir / "sessions"

    @property
    def profile_dir(self) -> Path:
        return self.home_dir / "browser-profile"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
