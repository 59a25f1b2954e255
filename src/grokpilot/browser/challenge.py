"""Challenge detection and handling.

Classifies the live page into a closed set of obstacles and resolves each
with a kind-specific strategy:

1. **Detect**: snapshot URL, title, body text and known element signatures
   into a ``PageState`` and run the pure ``classify`` over it.
2. **Wait it out**: interstitial and widget challenges usually clear on
   their own; poll for self-clearance, then fall back to a human.
3. **Hand off to a human**: puzzle and CAPTCHA widgets are solved in the
   visible window; the run resumes after a console acknowledgment.
4. **Abort**: a login redirect means credentials are missing or expired and
   nothing local can fix it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError
from rich.console import Console

from grokpilot.browser.assets import PAGE_STATE, load_asset
from grokpilot.exceptions import ChallengeUnresolved

if TYPE_CHECKING:
    from playwright.async_api import Page

    from grokpilot.settings.config import ChallengeSettings

logger = logging.getLogger(__name__)


class ChallengeKind(str, Enum):
    """Known page obstacles."""

    SCRIPT_CHALLENGE = "script-challenge"
    WIDGET_CHALLENGE = "widget-challenge"
    PUZZLE_CAPTCHA = "puzzle-captcha"
    RECAPTCHA = "recaptcha"
    HCAPTCHA = "hcaptcha"
    LOGIN_REDIRECT = "login-redirect"
    NONE = "none"


@dataclass(frozen=True)
class PageState:
    """Immutable snapshot of the DOM facts the classifier needs."""

    url: str = ""
    title: str = ""
    body_text: str = ""
    present: frozenset[str] = field(default_factory=frozenset)


_INTERSTITIAL_TITLES = ("just a moment",)
_INTERSTITIAL_BODY = ("checking your browser",)

# Ordered signature groups: (selectors, kind). First group with a present selector wins.
_SIGNATURE_GROUPS: list[tuple[tuple[str, ...], ChallengeKind]] = [
    (
        (
            'iframe[src*="challenges.cloudflare.com"]',
            ".cf-turnstile",
            'input[name="cf-turnstile-response"]',
        ),
        ChallengeKind.WIDGET_CHALLENGE,
    ),
    (
        (
            'iframe[src*="arkoselabs"]',
            'iframe[src*="funcaptcha"]',
            "#FunCaptcha",
            '[id*="arkose"]',
            'input[name="fc-token"]',
        ),
        ChallengeKind.PUZZLE_CAPTCHA,
    ),
    (
        ('iframe[src*="recaptcha"]', ".g-recaptcha", "[data-sitekey]"),
        ChallengeKind.RECAPTCHA,
    ),
    (
        ('iframe[src*="hcaptcha"]', ".h-captcha"),
        ChallengeKind.HCAPTCHA,
    ),
]

SIGNATURE_SELECTORS: tuple[str, ...] = tuple(s for group, _ in _SIGNATURE_GROUPS for s in group)

LOGIN_URL_PATTERNS = ("x.com/login", "twitter.com/login", "/i/flow/login", "grok.com/login")

LOGIN_REMEDIATION = (
    "Your session cookies are missing or expired. Options:\n"
    "  1. Log into grok.com in Chrome, then re-run (cookies are read from the profile)\n"
    "  2. Export cookies to <home>/cookies.json or pass --inline-cookies-file\n"
    "  3. Re-run with --manual-login and sign in in the opened window"
)


def classify(state: PageState) -> ChallengeKind:
    """Return the single obstacle *state* shows, checked in a fixed order."""
    title = state.title.lower()
    body = state.body_text.lower()
    if any(t in title for t in _INTERSTITIAL_TITLES) or any(b in body for b in _INTERSTITIAL_BODY):
        return ChallengeKind.SCRIPT_CHALLENGE

    for selectors, kind in _SIGNATURE_GROUPS:
        if any(s in state.present for s in selectors):
            return kind

    url = state.url.lower()
    if any(p in url for p in LOGIN_URL_PATTERNS):
        return ChallengeKind.LOGIN_REDIRECT

    return ChallengeKind.NONE


def console_acknowledge(message: str) -> None:
    """Block until the user presses Enter. Raises ``EOFError`` if stdin is closed."""
    Console(stderr=True).input(f"[bold yellow]{message}[/bold yellow] Press Enter to continue... ")


class ChallengeEngine:
    """Detects and resolves page obstacles for one page.

    Args:
        page: Playwright ``Page`` being driven.
        settings: Challenge timing settings.
        headless: No visible window; self-clearing challenges are not waited on.
        manual_login: A login page is expected while the user signs in and is
            not treated as fatal.
        acknowledge: Blocking callable asking a human to confirm; run in a
            worker thread. Must raise ``EOFError`` when no answer is possible.
    """

    def __init__(
        self,
        page: Page,
        settings: ChallengeSettings,
        *,
        headless: bool = False,
        manual_login: bool = False,
        acknowledge: Callable[[str], None] = console_acknowledge,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.page = page
        self.settings = settings
        self.headless = headless
        self.manual_login = manual_login
        self._acknowledge = acknowledge
        self._clock = clock
        self._sleep = sleep
        self._handlers: dict[ChallengeKind, Callable[[ChallengeKind], Awaitable[None]]] = {
            ChallengeKind.SCRIPT_CHALLENGE: self._await_self_clear,
            ChallengeKind.WIDGET_CHALLENGE: self._await_self_clear,
            ChallengeKind.PUZZLE_CAPTCHA: self._await_human,
            ChallengeKind.RECAPTCHA: self._await_human,
            ChallengeKind.HCAPTCHA: self._await_human,
            ChallengeKind.LOGIN_REDIRECT: self._abort_login,
        }

    async def snapshot(self) -> PageState | None:
        """Capture a ``PageState``; ``None`` if the page cannot be evaluated."""
        try:
            raw = await self.page.evaluate(load_asset(PAGE_STATE), list(SIGNATURE_SELECTORS))
        except PlaywrightError as exc:
            logger.debug("Page state snapshot failed: %s", exc)
            return None
        return PageState(
            url=raw.get("url", ""),
            title=raw.get("title", ""),
            body_text=raw.get("body", ""),
            present=frozenset(raw.get("present", ())),
        )

    async def detect(self) -> ChallengeKind:
        state = await self.snapshot()
        if state is None:
            return ChallengeKind.NONE
        kind = classify(state)
        if kind is not ChallengeKind.NONE:
            logger.info("Challenge detected: %s on %s", kind.value, state.url)
        return kind

    async def handle(self, kind: ChallengeKind) -> None:
        """Run the handler for *kind*.

        Raises:
            ChallengeUnresolved: On a login redirect or when no human
                acknowledgment can be obtained.
        """
        handler = self._handlers.get(kind)
        if handler is not None:
            await handler(kind)

    async def check_and_handle(self, max_rounds: int | None = None) -> ChallengeKind:
        """Detect and handle obstacles until the page is clear or rounds run out.

        Returns:
            The last detected kind; ``ChallengeKind.NONE`` when the page is clear.
        """
        rounds = max_rounds or self.settings.max_rounds
        kind = ChallengeKind.NONE
        for attempt in range(rounds):
            kind = await self.detect()
            if kind is ChallengeKind.NONE:
                return kind
            await self.handle(kind)
            if kind is ChallengeKind.LOGIN_REDIRECT:
                return kind
            if attempt < rounds - 1:
                await self._sleep(self.settings.round_pause_sec)
        logger.warning("Challenge still present after %d rounds: %s", rounds, kind.value)
        return kind

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _await_self_clear(self, kind: ChallengeKind) -> None:
        if self.headless:
            logger.warning(
                "%s in headless mode — auto-resolution is unreliable, continuing without waiting",
                kind.value,
            )
            return

        timeout = self.settings.self_clear_timeout_sec
        logger.info("Waiting up to %.0fs for %s to clear", timeout, kind.value)
        deadline = self._clock() + timeout
        while self._clock() < deadline:
            await self._sleep(self.settings.self_clear_poll_sec)
            if await self.detect() is not kind:
                logger.info("%s cleared", kind.value)
                return

        await self._ask_human(kind, f"{kind.value} did not clear on its own. Resolve it in the browser window.")

    async def _await_human(self, kind: ChallengeKind) -> None:
        await self._ask_human(kind, f"{kind.value} detected. Solve it in the browser window.")
        settle = (
            self.settings.puzzle_settle_sec
            if kind is ChallengeKind.PUZZLE_CAPTCHA
            else self.settings.captcha_settle_sec
        )
        await self._sleep(settle)

    async def _abort_login(self, kind: ChallengeKind) -> None:
        if self.manual_login:
            logger.info("Login page shown — waiting for manual sign-in")
            return
        raise ChallengeUnresolved(
            kind.value,
            f"Redirected to a login page ({self.page.url}) — not authenticated",
            LOGIN_REMEDIATION,
        )

    async def _ask_human(self, kind: ChallengeKind, message: str) -> None:
        logger.warning("Waiting for manual resolution of %s", kind.value)
        try:
            await asyncio.to_thread(self._acknowledge, message)
        except EOFError as exc:
            raise ChallengeUnresolved(
                kind.value,
                f"{kind.value} needs manual resolution but no console is available",
                "Re-run in an interactive terminal with a visible browser window.",
            ) from exc
