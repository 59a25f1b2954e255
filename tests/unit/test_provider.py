"""Tests for credential source priority."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from grokpilot.cookies.provider import CredentialSource, resolve_credentials
from grokpilot.exceptions import CookiePayloadError
from grokpilot.models.run import Credential, RunOptions

INLINE = json.dumps([{"name": "inline", "value": "1", "domain": ".grok.com"}])
FILE = json.dumps([{"name": "file", "value": "2", "domain": ".grok.com"}])
AUTO = json.dumps([{"name": "auto", "value": "3", "domain": ".grok.com"}])


@pytest.fixture()
def cookie_db(tmp_path: Path) -> Path:
    db = tmp_path / "Cookies"
    db.write_bytes(b"placeholder")
    return db


def _reader(*cookies: Credential) -> MagicMock:
    reader = MagicMock()
    reader.read.side_effect = lambda path, domain: [c for c in cookies if domain in (c.domain or "")]
    return reader


class TestResolveCredentials:
    """Exactly one source is chosen, in priority order."""

    def test_inline_wins(self, tmp_path: Path) -> None:
        cookie_file = tmp_path / "c.json"
        cookie_file.write_text(FILE, encoding="utf-8")
        (tmp_path / "cookies.json").write_text(AUTO, encoding="utf-8")
        options = RunOptions(prompt="q", inline_cookies=INLINE, inline_cookies_file=str(cookie_file))

        resolved = resolve_credentials(options, tmp_path)

        assert resolved.source == CredentialSource.INLINE
        assert [c.name for c in resolved.cookies] == ["inline"]

    def test_inline_file_before_auto(self, tmp_path: Path) -> None:
        cookie_file = tmp_path / "c.json"
        cookie_file.write_text(FILE, encoding="utf-8")
        (tmp_path / "cookies.json").write_text(AUTO, encoding="utf-8")

        resolved = resolve_credentials(RunOptions(prompt="q", inline_cookies_file=str(cookie_file)), tmp_path)

        assert resolved.source == CredentialSource.INLINE_FILE
        assert resolved.origin == str(cookie_file)

    def test_auto_file_before_chrome(self, tmp_path: Path, cookie_db: Path) -> None:
        (tmp_path / "cookies.json").write_text(AUTO, encoding="utf-8")
        reader = _reader(Credential(name="chrome", value="4", domain=".grok.com"))

        resolved = resolve_credentials(RunOptions(prompt="q", cookie_path=str(cookie_db)), tmp_path, reader=reader)

        assert resolved.source == CredentialSource.AUTO_FILE
        reader.read.assert_not_called()

    def test_chrome_profile_filtered_to_auth_domains(self, tmp_path: Path, cookie_db: Path) -> None:
        reader = _reader(
            Credential(name="sso", value="a", domain=".grok.com"),
            Credential(name="auth_token", value="b", domain=".x.com"),
            Credential(name="nflx", value="c", domain=".netflix.com"),
        )

        resolved = resolve_credentials(
            RunOptions(prompt="q", cookie_path=str(cookie_db)), tmp_path, domains=["grok.com", "x.com"], reader=reader
        )

        assert resolved.source == CredentialSource.CHROME_PROFILE
        assert sorted(c.name for c in resolved.cookies) == ["auth_token", "sso"]
        assert resolved.origin == str(cookie_db)

    def test_default_paths_searched(self, tmp_path: Path, cookie_db: Path) -> None:
        reader = _reader(Credential(name="sso", value="a", domain=".grok.com"))
        resolved = resolve_credentials(
            RunOptions(prompt="q"),
            tmp_path,
            reader=reader,
            cookie_paths=lambda: [tmp_path / "missing" / "Cookies", cookie_db],
        )
        assert resolved.source == CredentialSource.CHROME_PROFILE
        assert reader.read.call_args.args[0] == cookie_db

    @pytest.mark.parametrize("extra", [{"manual_login": True}, {"remote_chrome": "localhost:9222"}])
    def test_chrome_skipped_when_browser_owns_session(self, tmp_path: Path, cookie_db: Path, extra) -> None:
        reader = _reader(Credential(name="sso", value="a", domain=".grok.com"))
        options = RunOptions(prompt="q", cookie_path=str(cookie_db), **extra)

        resolved = resolve_credentials(options, tmp_path, reader=reader)

        assert resolved.source == CredentialSource.NONE
        assert len(resolved) == 0
        reader.read.assert_not_called()

    def test_nothing_found(self, tmp_path: Path) -> None:
        resolved = resolve_credentials(RunOptions(prompt="q"), tmp_path, cookie_paths=lambda: [])
        assert resolved.source == CredentialSource.NONE

    def test_invalid_inline_payload_raises(self, tmp_path: Path) -> None:
        with pytest.raises(CookiePayloadError):
            resolve_credentials(RunOptions(prompt="q", inline_cookies="{broken"), tmp_path)
