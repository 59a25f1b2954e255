"""Run-level data models: inbound options, credentials, and outcomes.

``RunOptions`` and ``Credential`` are Pydantic models because they are
parsed from untrusted input (CLI flags, cookie JSON). ``RunResult`` and
``SessionRecord`` are plain dataclasses describing outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Credential(BaseModel):
    """A single authentication cookie to replay into the browser.

    Accepts the exported-cookie JSON shape (``httpOnly`` camel case) as well
    as snake_case field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    value: str
    domain: str | None = None
    path: str = "/"
    secure: bool = False
    http_only: bool = Field(default=False, alias="httpOnly")
    expires: float | None = None
    url: str | None = None

    @field_validator("path", mode="before")
    @classmethod
    def _default_path(cls, v: Any) -> str:
        return v or "/"

    def to_playwright(self, fallback_url: str = "") -> dict[str, Any]:
        """Return the dict shape expected by ``BrowserContext.add_cookies``.

        Playwright requires either ``url`` or ``domain`` + ``path``; a cookie
        carrying neither is bound to *fallback_url*.
        """
        cookie: dict[str, Any] = {
            "name": self.name,
            "value": self.value,
            "secure": self.secure,
            "httpOnly": self.http_only,
        }
        if self.url:
            cookie["url"] = self.url
        elif self.domain:
            cookie["domain"] = self.domain
            cookie["path"] = self.path
        else:
            cookie["url"] = fallback_url
        if self.expires and self.expires > 0:
            cookie["expires"] = self.expires
        return cookie


class RunOptions(BaseModel):
    """Options for a single ask-grok run."""

    prompt: str
    files: list[str] = Field(default_factory=list)
    model: str = "grok-3"
    url: str | None = None

    # Transport
    remote_chrome: str | None = None
    chrome_path: str | None = None
    chrome_profile: str | None = None
    headless: bool | None = None
    manual_login: bool = False
    keep_browser: bool = False

    # Credentials
    cookie_path: str | None = None
    inline_cookies: str | None = None
    inline_cookies_file: str | None = None

    # Modes
    think: bool = False
    deep_search: bool = False
    imagine: str | None = None
    read_aloud: str | None = None

    # Timeouts (None = use settings)
    browser_timeout_ms: int | None = Field(default=None, gt=0)
    response_timeout_ms: int | None = Field(default=None, gt=0)

    verbose: bool = False

    def active_modes(self) -> list[str]:
        """Human-readable labels for the enabled feature modes."""
        modes: list[str] = []
        if self.think:
            modes.append("Think")
        if self.deep_search:
            modes.append("DeepSearch")
        if self.imagine:
            modes.append(f"Imagine -> {self.imagine}")
        if self.read_aloud:
            modes.append(f"ReadAloud -> {self.read_aloud}")
        return modes


@dataclass
class RunResult:
    """Outcome of a successful run."""

    answer: str
    duration_ms: int


class SessionStatus(str, Enum):
    """Lifecycle status of a persisted session record."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SessionRecord:
    """Persisted metadata for one run."""

    id: str
    prompt: str
    files: list[str] = field(default_factory=list)
    model: str = "grok-3"
    status: SessionStatus = SessionStatus.RUNNING
    mode: str = "browser"
    answer: str | None = None
    error_message: str | None = None
    duration_ms: int | None = None
    options: dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict suitable for JSON output."""
        return {
            "id": self.id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "prompt": self.prompt,
            "files": self.files,
            "model": self.model,
            "status": self.status.value,
            "mode": self.mode,
            "answer": self.answer,
            "error_message": self.error_message,
            "duration_ms": self.duration_ms,
            "options": self.options,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionRecord:
        return cls(
            id=data["id"],
            prompt=data.get("prompt", ""),
            files=list(data.get("files") or []),
            model=data.get("model", "grok-3"),
            status=SessionStatus(data.get("status", SessionStatus.RUNNING.value)),
            mode=data.get("mode", "browser"),
            answer=data.get("answer"),
            error_message=data.get("error_message"),
            duration_ms=data.get("duration_ms"),
            options=dict(data.get("options") or {}),
            created_at=data.get("created_at") or _now_iso(),
            updated_at=data.get("updated_at") or _now_iso(),
        )

    @property
    def created(self) -> datetime:
        return datetime.fromisoformat(self.created_at)
