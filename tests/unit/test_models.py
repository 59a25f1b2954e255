"""Tests for run models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from grokpilot.models.run import Credential, RunOptions, SessionRecord, SessionStatus


class TestCredential:
    """Cookie model parsing and Playwright conversion."""

    def test_exported_shape(self) -> None:
        c = Credential.model_validate(
            {"name": "sso", "value": "v", "domain": ".grok.com", "httpOnly": True, "sameSite": "Lax", "path": None}
        )
        assert c.http_only is True
        assert c.path == "/"

    def test_domain_cookie(self) -> None:
        c = Credential(name="sso", value="v", domain=".grok.com", secure=True, expires=1_900_000_000)
        assert c.to_playwright("https://grok.com") == {
            "name": "sso",
            "value": "v",
            "secure": True,
            "httpOnly": False,
            "domain": ".grok.com",
            "path": "/",
            "expires": 1_900_000_000,
        }

    def test_url_wins_over_domain(self) -> None:
        c = Credential(name="a", value="b", domain=".grok.com", url="https://x.com")
        cookie = c.to_playwright("https://grok.com")
        assert cookie["url"] == "https://x.com"
        assert "domain" not in cookie

    def test_session_cookie_has_no_expiry(self) -> None:
        assert "expires" not in Credential(name="a", value="b", expires=-1).to_playwright("https://grok.com")


class TestRunOptions:
    """Per-run option validation."""

    def test_active_modes(self) -> None:
        options = RunOptions(prompt="q", think=True, deep_search=True, imagine="cat.png", read_aloud="a.txt")
        assert options.active_modes() == ["Think", "DeepSearch", "Imagine -> cat.png", "ReadAloud -> a.txt"]

    def test_no_modes(self) -> None:
        assert RunOptions(prompt="q").active_modes() == []

    def test_timeouts_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            RunOptions(prompt="q", response_timeout_ms=0)


class TestSessionRecord:
    """Serialization of persisted records."""

    def test_from_dict_defaults(self) -> None:
        record = SessionRecord.from_dict({"id": "0123456789abcdef", "status": "failed"})
        assert record.status is SessionStatus.FAILED
        assert record.files == []
        assert record.model == "grok-3"

    def test_to_dict_uses_status_value(self) -> None:
        record = SessionRecord(id="0123456789abcdef", prompt="p", status=SessionStatus.TIMEOUT)
        assert record.to_dict()["status"] == "timeout"
