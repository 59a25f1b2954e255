"""DevTools transport: launch or attach to Chrome and open the control channel.

Both modes end up on Playwright's ``connect_over_cdp`` so the rest of the
engine sees a single ``Page`` regardless of how the browser was obtained:

- **fresh**: spawn Chrome ourselves with the anti-detection flags from
  ``stealth.build_launch_flags`` on a free debugging port, then connect with
  retries while it boots. Spawning the process directly (rather than
  ``chromium.launch``) lets ``--keep-browser`` leave it running after the
  channel is closed.
- **attached**: connect to an existing Chrome at ``host:port``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
import shutil
import socket
import subprocess
import tempfile
from collections.abc import Awaitable, Callable, Iterable
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError, async_playwright

from grokpilot.browser.stealth import build_launch_flags
from grokpilot.exceptions import TransportError

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Playwright

    from grokpilot.models.run import Credential
    from grokpilot.settings.config import BrowserSettings

logger = logging.getLogger(__name__)

_BRACKETED_ADDRESS = re.compile(r"^\[(.+)\]:(\d+)$")
_PLAIN_ADDRESS = re.compile(r"^([^:]+):(\d+)$")


class LaunchMode(str, Enum):
    FRESH = "fresh"
    ATTACHED = "attached"


def parse_remote_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` or ``[ipv6]:port``; defaults to ``localhost:9222``."""
    match = _BRACKETED_ADDRESS.match(address) or _PLAIN_ADDRESS.match(address)
    if not match:
        return "localhost", 9222
    return match.group(1), int(match.group(2))


def find_free_port() -> int:
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class BrowserSession:
    """One browser plus the DevTools channel to it, owned by a single run.

    Args:
        settings: Browser section of the grokpilot settings.
        remote_address: ``host:port`` of a running Chrome; selects attached mode.
        chrome_path: Chrome binary; falls back to settings, then Playwright's Chromium.
        profile_dir: Persistent ``--user-data-dir``. A temporary profile is
            created (and later removed) when omitted.
        headless: Overrides ``settings.headless`` when not ``None``.
        timeout_ms: Overall session lifetime budget.
    """

    def __init__(
        self,
        settings: BrowserSettings,
        *,
        remote_address: str | None = None,
        chrome_path: str | None = None,
        profile_dir: str | Path | None = None,
        headless: bool | None = None,
        timeout_ms: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self.mode = LaunchMode.ATTACHED if remote_address else LaunchMode.FRESH
        self.remote_address = remote_address
        self.chrome_path = chrome_path or settings.chrome_path or None
        self.profile_dir = Path(profile_dir) if profile_dir else None
        self.headless = settings.headless if headless is None else headless
        self.timeout_ms = timeout_ms or settings.timeout_ms
        self.endpoint = ""
        self._sleep = sleep

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._process: subprocess.Popen | None = None
        self._temp_profile: Path | None = None
        self.context: BrowserContext | None = None
        self.page: Page | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> Page:
        """Launch or attach, then return the page to drive.

        Raises:
            TransportError: If Chrome cannot be started or reached.
        """
        self._playwright = await async_playwright().start()
        if self.mode is LaunchMode.ATTACHED:
            host, port = parse_remote_address(self.remote_address or "")
            netloc = f"[{host}]" if ":" in host else host
            self.endpoint = f"http://{netloc}:{port}"
            logger.info("Attaching to remote Chrome at %s", self.endpoint)
            try:
                self._browser = await self._playwright.chromium.connect_over_cdp(self.endpoint)
            except PlaywrightError as exc:
                raise TransportError(f"Could not attach to Chrome at {self.remote_address}: {exc}") from exc
        else:
            self._spawn_chrome()
            await self._sleep(self._settings.launch_settle_sec)
            self._browser = await self._connect_with_retry()

        self.context = self._browser.contexts[0] if self._browser.contexts else await self._browser.new_context()
        self.page = self.context.pages[0] if self.context.pages else await self.context.new_page()
        return self.page

    async def close(self, keep_alive: bool = False) -> None:
        """Close the channel; kill the launched Chrome unless *keep_alive*."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as exc:
                logger.warning("Browser disconnect error (non-fatal): %s", exc)
            finally:
                self._browser = None
                self.context = None
                self.page = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            finally:
                self._playwright = None

        if keep_alive:
            if self._process is not None:
                logger.info("Keeping browser open (pid %s, %s)", self._process.pid, self.endpoint)
            return

        if self._process is not None:
            await asyncio.to_thread(_terminate, self._process)
            self._process = None
        if self._temp_profile is not None:
            shutil.rmtree(self._temp_profile, ignore_errors=True)
            self._temp_profile = None

    async def install_credentials(self, cookies: Iterable[Credential], fallback_url: str) -> int:
        """Add *cookies* to the browser context one by one; returns how many stuck."""
        installed = 0
        total = 0
        for cookie in cookies:
            total += 1
            try:
                await self.context.add_cookies([cookie.to_playwright(fallback_url)])
                installed += 1
            except PlaywrightError as exc:
                logger.debug("Failed to set cookie %s: %s", cookie.name, exc)
        logger.info("Set %d/%d cookies", installed, total)
        return installed

    # ------------------------------------------------------------------
    # Fresh launch helpers
    # ------------------------------------------------------------------

    def _spawn_chrome(self) -> None:
        port = find_free_port()
        self.endpoint = f"http://127.0.0.1:{port}"
        binary = self.chrome_path or self._playwright.chromium.executable_path
        profile = self.profile_dir
        if profile is None:
            self._temp_profile = Path(tempfile.mkdtemp(prefix="grokpilot-profile-"))
            profile = self._temp_profile
        else:
            profile.mkdir(parents=True, exist_ok=True)

        flags = build_launch_flags(
            port=port,
            headless=self.headless,
            profile_dir=profile,
            window_size=self._settings.window_size,
        )
        try:
            self._process = subprocess.Popen(
                [binary, *flags],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            raise TransportError(f"Could not launch Chrome at {binary}: {exc}") from exc
        logger.info("Chrome launched (pid %s) on port %d", self._process.pid, port)

    async def _connect_with_retry(self) -> Browser:
        last: Exception | None = None
        for _ in range(self._settings.connect_attempts):
            if self._process is not None and self._process.poll() is not None:
                raise TransportError(f"Chrome exited during startup (code {self._process.returncode})")
            try:
                browser = await self._playwright.chromium.connect_over_cdp(self.endpoint)
                logger.debug("DevTools channel connected at %s", self.endpoint)
                return browser
            except PlaywrightError as exc:
                last = exc
                await self._sleep(self._settings.connect_retry_sec)
        raise TransportError(f"Could not connect to Chrome DevTools at {self.endpoint}: {last}")


def _terminate(process: subprocess.Popen, timeout: float = 5.0) -> None:
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning("Chrome did not exit after SIGTERM — killing pid %s", process.pid)
        process.kill()
        process.wait(timeout=timeout)
