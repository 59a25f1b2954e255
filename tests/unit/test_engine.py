"""End-to-end tests for ``run_grok`` against a scripted fake browser."""

from __future__ import annotations

import threading
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from grokpilot.browser.assets import (
    BODY_SNIPPET,
    BUSY_STATE,
    FILL_PLAIN,
    FIND_IMAGE,
    INPUT_KIND,
    PAGE_STATE,
    RESPONSE_TEXT,
    SPEAK,
    STEALTH,
    load_asset,
)
from grokpilot.cookies.chrome import ChromeCookieReader
from grokpilot.cookies.provider import CredentialSource, ResolvedCredentials
from grokpilot.engine import is_authenticated, run_grok
from grokpilot.exceptions import ArtifactError, ChallengeUnresolved, NavigationError, TransportError
from grokpilot.models.run import Credential, RunOptions
from grokpilot.settings.config import Settings

ANSWER = "Paris is the capital of France."
TEXTAREA = 'textarea[placeholder*="Ask"]'
SEND_BUTTON = 'button[aria-label*="Send"]'
COOKIES = (
    Credential(name="sso", value="a", domain=".grok.com"),
    Credential(name="auth_token", value="b", domain=".x.com"),
)


class _Element:
    def __init__(self, present: bool = True) -> None:
        self.present = present
        self.clicks = 0

    async def count(self) -> int:
        return 1 if self.present else 0

    async def is_visible(self) -> bool:
        return self.present

    async def is_enabled(self) -> bool:
        return self.present

    async def click(self) -> None:
        self.clicks += 1

    async def focus(self) -> None:
        pass

    async def get_attribute(self, name: str):
        return None


class GrokPage:
    """Scripted grok.com page: a composer, a send button and one answer."""

    def __init__(self, url: str = "https://grok.com/", titles=("Grok",), image: str | None = None) -> None:
        self.url = url
        self.titles = list(titles)
        self.image = image
        self.filled: str | None = None
        self.spoken: str | None = None
        self.elements = {TEXTAREA: _Element(), SEND_BUTTON: _Element()}
        self.keyboard = MagicMock()
        self.keyboard.press = AsyncMock()
        self.keyboard.insert_text = AsyncMock()
        self.goto = AsyncMock()

    def locator(self, selector: str):
        handle = MagicMock()
        handle.first = self.elements.get(selector) or _Element(present=False)
        return handle

    async def evaluate(self, script, arg=None):
        if script == load_asset(PAGE_STATE):
            title = self.titles.pop(0) if len(self.titles) > 1 else self.titles[0]
            return {"url": self.url, "title": title, "body": "", "present": []}
        if script == load_asset(INPUT_KIND):
            return "plain"
        if script == load_asset(FILL_PLAIN):
            self.filled = arg["text"]
            return None
        if script == load_asset(RESPONSE_TEXT):
            if self.filled is None:
                return None
            return {"text": ANSWER, "locator": '[data-testid="responseText"]'}
        if script == load_asset(BUSY_STATE):
            return False
        if script == load_asset(FIND_IMAGE):
            return self.image
        if script == load_asset(SPEAK):
            self.spoken = arg
            return {"ok": True}
        if script == load_asset(BODY_SNIPPET):
            return ""
        raise AssertionError("unexpected script evaluated")


class FakeSession:
    """Stands in for ``BrowserSession``; records how it was built and closed."""

    def __init__(self, page: GrokPage) -> None:
        self.page = page
        self.context = MagicMock()
        self.context.add_init_script = AsyncMock()
        self.install_credentials = AsyncMock(side_effect=lambda cookies, url: len(tuple(cookies)))
        self.close = AsyncMock()
        self.settings = None
        self.kwargs: dict = {}

    def factory(self, settings, **kwargs) -> FakeSession:
        self.settings = settings
        self.kwargs = kwargs
        return self

    async def open(self) -> GrokPage:
        return self.page


@pytest.fixture()
def settings(grok_home: Path) -> Settings:
    return Settings()


def _resolver(cookies=COOKIES):
    source = CredentialSource.CHROME_PROFILE if cookies else CredentialSource.NONE
    return MagicMock(return_value=ResolvedCredentials(source, tuple(cookies)))


async def _run(session: FakeSession, settings: Settings, clock, options: RunOptions, **kwargs):
    kwargs.setdefault("credential_resolver", _resolver())
    kwargs.setdefault("acknowledge", MagicMock())
    kwargs.setdefault("sleep", clock.sleep)
    return await run_grok(
        "<question>\nWhat is the capital of France?\n</question>",
        options,
        settings,
        session_factory=session.factory,
        clock=clock,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# is_authenticated
# ---------------------------------------------------------------------------


class TestIsAuthenticated:
    """Auth check compares hosts, not substrings."""

    @pytest.mark.parametrize(
        "current,expected",
        [
            ("https://grok.com/", True),
            ("https://grok.com/chat/abc", True),
            ("https://www.grok.com/", True),
            ("https://grok.com/login", False),
            ("https://x.com/i/flow/login", False),
            ("https://evil.example/?next=grok.com", False),
            ("https://notgrok.com/", False),
        ],
    )
    def test_urls(self, current: str, expected: bool) -> None:
        assert is_authenticated(current, "https://grok.com") is expected


# ---------------------------------------------------------------------------
# run_grok
# ---------------------------------------------------------------------------


class TestRunGrok:
    """The full pipeline against a fake page."""

    @pytest.mark.anyio
    async def test_clean_run_returns_answer(self, settings: Settings, clock) -> None:
        page = GrokPage()
        session = FakeSession(page)
        progress: list[str] = []

        result = await _run(session, settings, clock, RunOptions(prompt="q"), on_progress=progress.append)

        assert result.answer == ANSWER
        assert 0 < result.duration_ms < 300_000
        assert page.filled.startswith("<question>")
        assert page.elements[SEND_BUTTON].clicks == 1
        session.context.add_init_script.assert_awaited_once_with(load_asset(STEALTH))
        session.install_credentials.assert_awaited_once()
        assert session.install_credentials.call_args.args[1] == "https://grok.com"
        page.goto.assert_awaited_once()
        assert "Authenticated" in progress
        assert "Installed 2 cookies (chrome-profile)" in progress
        session.close.assert_awaited_once_with(keep_alive=False)

    @pytest.mark.anyio
    async def test_session_built_from_options(self, settings: Settings, clock) -> None:
        session = FakeSession(GrokPage())
        options = RunOptions(
            prompt="q", remote_chrome="localhost:9333", headless=True, browser_timeout_ms=5000, chrome_path="/bin/c"
        )
        await _run(session, settings, clock, options)

        assert session.settings is settings.browser
        assert session.kwargs["remote_address"] == "localhost:9333"
        assert session.kwargs["headless"] is True
        assert session.kwargs["timeout_ms"] == 5000
        assert session.kwargs["chrome_path"] == "/bin/c"
        assert session.kwargs["profile_dir"] is None

    @pytest.mark.anyio
    async def test_no_cookies_skips_install(self, settings: Settings, clock) -> None:
        session = FakeSession(GrokPage())
        await _run(session, settings, clock, RunOptions(prompt="q"), credential_resolver=_resolver(()))
        session.install_credentials.assert_not_awaited()

    @pytest.mark.anyio
    async def test_interstitial_clears_then_answers(self, settings: Settings, clock) -> None:
        page = GrokPage(titles=["Just a moment...", "Just a moment...", "Just a moment...", "Just a moment...", "Grok"])
        ack = MagicMock()

        result = await _run(FakeSession(page), settings, clock, RunOptions(prompt="q"), acknowledge=ack)

        assert result.answer == ANSWER
        ack.assert_not_called()

    @pytest.mark.anyio
    async def test_login_redirect_aborts_and_closes(self, settings: Settings, clock) -> None:
        page = GrokPage(url="https://x.com/i/flow/login")
        session = FakeSession(page)

        with pytest.raises(ChallengeUnresolved) as exc_info:
            await _run(session, settings, clock, RunOptions(prompt="q"))

        assert exc_info.value.kind == "login-redirect"
        assert page.filled is None
        session.close.assert_awaited_once_with(keep_alive=False)

    @pytest.mark.anyio
    async def test_keep_browser(self, settings: Settings, clock) -> None:
        session = FakeSession(GrokPage())
        await _run(session, settings, clock, RunOptions(prompt="q", keep_browser=True))
        session.close.assert_awaited_once_with(keep_alive=True)

    @pytest.mark.anyio
    async def test_channel_failure_becomes_transport_error(self, settings: Settings, clock) -> None:
        page = GrokPage()
        page.goto = AsyncMock(side_effect=PlaywrightError("Target page, context or browser has been closed"))
        session = FakeSession(page)

        with pytest.raises(TransportError):
            await _run(session, settings, clock, RunOptions(prompt="q"))
        session.close.assert_awaited_once()

    @pytest.mark.anyio
    async def test_unreachable_url(self, settings: Settings, clock) -> None:
        page = GrokPage()
        page.goto = AsyncMock(side_effect=PlaywrightError("net::ERR_NAME_NOT_RESOLVED at https://grok.invalid"))

        with pytest.raises(NavigationError):
            await _run(FakeSession(page), settings, clock, RunOptions(prompt="q", url="https://grok.invalid"))

    @pytest.mark.anyio
    async def test_manual_login_waits_for_sign_in(self, settings: Settings, clock) -> None:
        page = GrokPage(url="https://x.com/i/flow/login")
        session = FakeSession(page)
        polls = 0

        async def _sleep(seconds: float) -> None:
            nonlocal polls
            await clock.sleep(seconds)
            if seconds == 3.0:
                polls += 1
                if polls == 2:
                    page.url = "https://grok.com/"

        result = await _run(session, settings, clock, RunOptions(prompt="q", manual_login=True), sleep=_sleep)

        assert result.answer == ANSWER
        assert polls == 2
        assert session.kwargs["profile_dir"] == str(settings.profile_dir)

    @pytest.mark.anyio
    async def test_manual_login_timeout(self, settings: Settings, clock) -> None:
        page = GrokPage(url="https://x.com/i/flow/login")
        options = RunOptions(prompt="q", manual_login=True, browser_timeout_ms=10_000)

        with pytest.raises(ChallengeUnresolved, match="Manual login not completed"):
            await _run(FakeSession(page), settings, clock, options)

    @pytest.mark.anyio
    async def test_modes_toggled(self, settings: Settings, clock) -> None:
        page = GrokPage()
        think = _Element()
        page.elements['button[aria-label*="Think"]'] = think

        await _run(FakeSession(page), settings, clock, RunOptions(prompt="q", think=True, deep_search=True))

        assert think.clicks == 1

    @pytest.mark.anyio
    async def test_imagine_with_page_local_image(self, settings: Settings, clock, tmp_path: Path) -> None:
        page = GrokPage(image="blob:https://grok.com/1234")
        target = tmp_path / "out" / "cat.png"

        result = await _run(FakeSession(page), settings, clock, RunOptions(prompt="q", imagine=str(target)))

        assert result.answer == f"Image saved to: {target}\nSource: blob:https://grok.com/1234"
        assert not target.exists()

    @pytest.mark.anyio
    async def test_read_aloud_writes_transcript(self, settings: Settings, clock, tmp_path: Path) -> None:
        page = GrokPage()
        target = tmp_path / "speech.md"

        result = await _run(FakeSession(page), settings, clock, RunOptions(prompt="q", read_aloud=str(target)))

        assert result.answer == ANSWER
        assert page.spoken == ANSWER
        assert ANSWER in target.read_text(encoding="utf-8")

    @pytest.mark.anyio
    async def test_credentials_resolved_off_loop_with_keychain_timeout(self, settings: Settings, clock) -> None:
        settings.cookies.keychain_timeout_sec = 1.5
        seen: dict = {}

        def _resolve(options, home_dir, *, domains, reader):
            seen["thread"] = threading.get_ident()
            seen["reader"] = reader
            return ResolvedCredentials(CredentialSource.NONE)

        await _run(FakeSession(GrokPage()), settings, clock, RunOptions(prompt="q"), credential_resolver=_resolve)

        assert seen["thread"] != threading.get_ident()
        assert isinstance(seen["reader"], ChromeCookieReader)
        assert seen["reader"]._keychain_timeout == 1.5

    @pytest.mark.anyio
    async def test_unwritable_transcript_is_labeled(self, settings: Settings, clock, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x", encoding="utf-8")
        session = FakeSession(GrokPage())

        with pytest.raises(ArtifactError, match="read-aloud transcript"):
            await _run(session, settings, clock, RunOptions(prompt="q", read_aloud=str(blocker / "speech.md")))
        session.close.assert_awaited_once()

    @pytest.mark.anyio
    async def test_unwritable_image_path_is_labeled(self, settings: Settings, clock, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x", encoding="utf-8")
        page = GrokPage(image="blob:https://grok.com/1234")

        with pytest.raises(ArtifactError, match="Could not save image"):
            await _run(FakeSession(page), settings, clock, RunOptions(prompt="q", imagine=str(blocker / "cat.png")))
