"""Run engine: drive one grok.com exchange end to end.

``run_grok`` owns the browser session for the length of the run:

    transport -> stealth -> credentials -> navigate -> challenges
    -> (manual login wait | auth check) -> locate input -> mode toggles
    -> insert + submit -> capture (text or image) -> read-aloud -> teardown

The session is always closed on exit; the Chrome process survives only
when ``keep_browser`` is set.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from urllib.parse import urlparse

import httpx
from playwright.async_api import Error as PlaywrightError

from grokpilot.browser.artifacts import read_aloud, save_image
from grokpilot.browser.capture import ResponseCapture
from grokpilot.browser.challenge import ChallengeEngine, ChallengeKind, console_acknowledge
from grokpilot.browser.interaction import InteractionDriver
from grokpilot.browser.navigation import navigate
from grokpilot.browser.stealth import apply_stealth_scripts
from grokpilot.browser.transport import BrowserSession
from grokpilot.cookies.chrome import ChromeCookieReader
from grokpilot.cookies.provider import ResolvedCredentials, resolve_credentials
from grokpilot.exceptions import ArtifactError, ChallengeUnresolved, TransportError
from grokpilot.models.run import RunOptions, RunResult
from grokpilot.settings.config import Settings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

LOGIN_PATHS = ("/login", "/i/flow/login")
MANUAL_LOGIN_POLL_SEC = 3.0


def is_authenticated(current_url: str, target_url: str) -> bool:
    """True when the page sits on the target host and not on a login path."""
    current = urlparse(current_url)
    target_host = urlparse(target_url).hostname or "grok.com"
    if any(p in current.path for p in LOGIN_PATHS):
        return False
    host = current.hostname or ""
    return host == target_host or host.endswith("." + target_host)


async def run_grok(
    bundle_text: str,
    options: RunOptions,
    settings: Settings,
    on_progress: ProgressCallback | None = None,
    *,
    session_factory: Callable[..., BrowserSession] = BrowserSession,
    credential_resolver: Callable[..., ResolvedCredentials] = resolve_credentials,
    acknowledge: Callable[[str], None] = console_acknowledge,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RunResult:
    """Send *bundle_text* to grok.com and return the answer.

    Args:
        bundle_text: The fully assembled prompt.
        options: Per-run options (CLI flags).
        settings: Ambient defaults.
        on_progress: Receives human-readable status lines.

    Raises:
        GrokPilotError: Any labeled failure (transport, challenge, locator,
            capture, cookie payload, navigation, artifact).
    """

    def progress(msg: str) -> None:
        logger.info(msg)
        if on_progress is not None:
            on_progress(msg)

    start = clock()
    url = options.url or settings.browser.url
    headless = settings.browser.headless if options.headless is None else options.headless
    browser_timeout_ms = options.browser_timeout_ms or settings.browser.timeout_ms
    response_timeout_ms = options.response_timeout_ms or settings.capture.response_timeout_ms

    profile_dir = options.chrome_profile
    if not profile_dir and options.manual_login and not options.remote_chrome:
        profile_dir = str(settings.profile_dir)
        progress(f"Using persistent profile: {profile_dir}")

    session = session_factory(
        settings.browser,
        remote_address=options.remote_chrome,
        chrome_path=options.chrome_path,
        profile_dir=profile_dir,
        headless=headless,
        timeout_ms=browser_timeout_ms,
        sleep=sleep,
    )

    try:
        if options.remote_chrome:
            progress(f"Attaching to remote Chrome at {options.remote_chrome}")
        else:
            progress("Launching Chrome")
        page = await session.open()

        if settings.browser.apply_stealth_scripts:
            await apply_stealth_scripts(session.context)
            progress("Stealth patches injected")

        # Cookie store reads and the keychain lookup block; keep them off the loop.
        credentials = await asyncio.to_thread(
            credential_resolver,
            options,
            settings.home_dir,
            domains=settings.cookies.domains,
            reader=ChromeCookieReader(keychain_timeout=settings.cookies.keychain_timeout_sec),
        )
        if credentials.cookies:
            await session.install_credentials(credentials.cookies, url)
            progress(f"Installed {len(credentials)} cookies ({credentials.source})")

        progress(f"Navigating to {url}")
        await navigate(
            page,
            url,
            timeout_ms=settings.browser.navigation_timeout_ms,
            settle_sec=settings.browser.post_navigation_settle_sec,
            sleep=sleep,
        )

        challenges = ChallengeEngine(
            page,
            settings.challenge,
            headless=headless,
            manual_login=options.manual_login,
            acknowledge=acknowledge,
            clock=clock,
            sleep=sleep,
        )
        progress("Checking for challenges...")
        await challenges.check_and_handle()

        if options.manual_login:
            progress("Manual login mode — sign in to grok.com in the browser window")
            await _wait_for_login(page, url, challenges, browser_timeout_ms, clock, sleep)
            progress("Authenticated")
        elif is_authenticated(page.url, url):
            progress("Authenticated")
        else:
            progress("Warning: auth not confirmed — proceeding")

        driver = InteractionDriver(page, settings.interaction, challenges=challenges, clock=clock, sleep=sleep)
        progress("Looking for input area...")
        selector = await driver.locate_input()

        if options.think:
            await driver.toggle("think")
        if options.deep_search:
            await driver.toggle("deep-search")

        capture = ResponseCapture(page, settings.capture, challenges=challenges, clock=clock, sleep=sleep)

        progress(f"Pasting prompt ({len(bundle_text):,} chars)...")
        await driver.insert_text(selector, bundle_text)
        await driver.submit(selector)

        if options.imagine:
            progress("Waiting for generated image...")
            source = await capture.capture_image(response_timeout_ms)
            if source:
                try:
                    await save_image(source, options.imagine)
                except httpx.HTTPError as exc:
                    logger.warning("Image download failed: %s", exc)
                except OSError as exc:
                    raise ArtifactError(f"Could not save image to {options.imagine}: {exc}") from exc
            answer = f"Image saved to: {options.imagine}\nSource: {source or 'unknown'}"
            return RunResult(answer=answer, duration_ms=_elapsed_ms(clock, start))

        progress("Waiting for Grok response...")
        response = await capture.capture(response_timeout_ms)

        if options.read_aloud:
            try:
                written = await read_aloud(capture, Path(options.read_aloud))
            except OSError as exc:
                raise ArtifactError(f"Could not save read-aloud transcript to {options.read_aloud}: {exc}") from exc
            if written is not None:
                progress(f"Read-aloud transcript saved to: {written}")

        duration_ms = _elapsed_ms(clock, start)
        progress(f"Done in {duration_ms / 1000:.1f}s")
        return RunResult(answer=response.text, duration_ms=duration_ms)

    except PlaywrightError as exc:
        raise TransportError(f"Browser channel failed: {exc}") from exc
    finally:
        if options.keep_browser:
            progress("Keeping browser open (--keep-browser)")
        await session.close(keep_alive=options.keep_browser)


async def _wait_for_login(
    page,
    url: str,
    challenges: ChallengeEngine,
    timeout_ms: int,
    clock: Callable[[], float],
    sleep: Callable[[float], Awaitable[None]],
) -> None:
    deadline = clock() + timeout_ms / 1000
    while clock() < deadline:
        kind = await challenges.detect()
        if kind not in (ChallengeKind.NONE, ChallengeKind.LOGIN_REDIRECT):
            await challenges.handle(kind)
        if is_authenticated(page.url, url):
            return
        await sleep(MANUAL_LOGIN_POLL_SEC)
    raise ChallengeUnresolved(
        ChallengeKind.LOGIN_REDIRECT.value,
        f"Manual login not completed within {timeout_ms // 1000}s",
        "Sign in faster or raise --browser-timeout.",
    )


def _elapsed_ms(clock: Callable[[], float], start: float) -> int:
    return int((clock() - start) * 1000)
