"""Response capture: poll the page until the answer stops changing.

Each poll reads the latest response text (first matching response container,
else the largest text block outside the composer) and whether the page still
looks busy. The answer is complete once the text has been unchanged for
``stability_threshold`` consecutive polls and either no busy indicator is
showing or the busy grace period has elapsed (indicators sometimes stick).

On timeout, any text seen so far is returned as a partial result; only a
run that never saw text raises ``CaptureTimeout``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError

from grokpilot.browser.assets import BODY_SNIPPET, BUSY_STATE, DOM_HINT, FIND_IMAGE, RESPONSE_TEXT, load_asset
from grokpilot.browser.locators import BUSY_INDICATOR, IMAGE_RESULT, RESPONSE_CONTAINER, SUBMIT_CONTROL
from grokpilot.exceptions import CaptureTimeout

if TYPE_CHECKING:
    from playwright.async_api import Page

    from grokpilot.browser.challenge import ChallengeEngine
    from grokpilot.settings.config import CaptureSettings

logger = logging.getLogger(__name__)


@dataclass
class CapturedResponse:
    """The answer text and how it was found."""

    text: str
    matched_locator: str = ""
    partial: bool = False


class ResponseCapture:
    """Polls one page for the generated answer or image.

    Args:
        page: Playwright ``Page`` being driven.
        settings: Capture heuristics.
        challenges: Re-run while no text has appeared yet.
    """

    def __init__(
        self,
        page: Page,
        settings: CaptureSettings,
        *,
        challenges: ChallengeEngine | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.page = page
        self.settings = settings
        self.challenges = challenges
        self._clock = clock
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Page probes
    # ------------------------------------------------------------------

    async def read_response(self, min_length: int | None = None) -> tuple[str, str] | None:
        """Return ``(text, locator)`` for the latest response block, if any."""
        found = await self.page.evaluate(
            load_asset(RESPONSE_TEXT),
            {
                "selectors": RESPONSE_CONTAINER.selectors,
                "minLength": self.settings.min_text_length if min_length is None else min_length,
                "fallbackMinLength": self.settings.fallback_min_length,
            },
        )
        if not found:
            return None
        return found["text"], found["locator"]

    async def is_busy(self) -> bool:
        return bool(
            await self.page.evaluate(
                load_asset(BUSY_STATE),
                {"busy": BUSY_INDICATOR.selectors, "submit": SUBMIT_CONTROL.selectors},
            )
        )

    async def page_snippet(self) -> str:
        try:
            return await self.page.evaluate(load_asset(BODY_SNIPPET), self.settings.snippet_chars)
        except PlaywrightError:
            return ""

    async def last_response_text(self) -> str | None:
        """Return the current response text without waiting, or ``None``."""
        try:
            found = await self.read_response(min_length=10)
        except PlaywrightError as exc:
            logger.debug("Response read failed: %s", exc)
            return None
        return found[0] if found else None

    # ------------------------------------------------------------------
    # Capture loops
    # ------------------------------------------------------------------

    async def capture(self, timeout_ms: int | None = None) -> CapturedResponse:
        """Wait for a stable answer.

        Raises:
            CaptureTimeout: If no response text was observed before the deadline.
        """
        s = self.settings
        timeout_ms = timeout_ms or s.response_timeout_ms
        start = self._clock()
        deadline = start + timeout_ms / 1000
        last_text = ""
        locator = ""
        stable = 0
        last_hint = start

        logger.debug("Polling for response (timeout %dms)", timeout_ms)
        while self._clock() < deadline:
            try:
                found = await self.read_response()
                busy = await self.is_busy()
            except PlaywrightError as exc:
                logger.debug("Poll error, retrying: %s", exc)
                await self._sleep(s.poll_interval_sec)
                continue

            if found is not None:
                text, matched = found
                if text == last_text:
                    stable += 1
                    elapsed = self._clock() - start
                    if stable >= s.stability_threshold and (not busy or elapsed > s.busy_grace_sec):
                        logger.info("Response complete (%d chars via %s)", len(text), locator)
                        return CapturedResponse(text, locator)
                else:
                    if matched != locator:
                        logger.debug("Matched response locator: %s", matched)
                    last_text, locator, stable = text, matched, 0
            elif not last_text:
                if self.challenges is not None:
                    await self.challenges.check_and_handle()
                if self._clock() - last_hint >= s.dom_hint_interval_sec:
                    last_hint = self._clock()
                    await self._log_dom_hint()

            await self._sleep(s.poll_interval_sec)

        if last_text:
            logger.warning("Response capture timed out — returning partial response (%d chars)", len(last_text))
            return CapturedResponse(last_text, locator, partial=True)

        raise CaptureTimeout(timeout_ms, await self.page_snippet())

    async def capture_image(self, timeout_ms: int | None = None) -> str | None:
        """Wait for a generated image and return its source URL, or ``None``."""
        timeout_ms = timeout_ms or self.settings.response_timeout_ms
        deadline = self._clock() + timeout_ms / 1000
        logger.info("Waiting for generated image...")
        while self._clock() < deadline:
            try:
                src = await self.page.evaluate(load_asset(FIND_IMAGE), IMAGE_RESULT.selectors)
            except PlaywrightError as exc:
                logger.debug("Image poll error: %s", exc)
                src = None
            if src:
                logger.info("Image found: %s", src[:80])
                return src
            await self._sleep(self.settings.image_poll_sec)
        logger.warning("Timed out waiting for generated image")
        return None

    async def _log_dom_hint(self) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        try:
            hint = await self.page.evaluate(load_asset(DOM_HINT))
        except PlaywrightError:
            return
        if hint:
            logger.debug("DOM hint:\n%s", hint)
