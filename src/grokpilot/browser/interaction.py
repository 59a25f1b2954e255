"""UI interaction: locate the chat input, toggle modes, insert text, submit.

Every element lookup walks a ``LocatorSet`` in priority order using
Playwright's Locator API. Only exhausting the whole set within its wait
bound counts as a miss.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError

from grokpilot.browser.assets import CLEAR_RICH, FILL_PLAIN, INPUT_KIND, load_asset
from grokpilot.browser.locators import INPUT_AREA, MODE_TOGGLES, SUBMIT_CONTROL, LocatorSet
from grokpilot.exceptions import LocatorNotFound

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page

    from grokpilot.browser.challenge import ChallengeEngine
    from grokpilot.settings.config import InteractionSettings

logger = logging.getLogger(__name__)


class InteractionDriver:
    """Drives the chat composer of one page.

    Args:
        page: Playwright ``Page`` being driven.
        settings: Interaction wait bounds.
        challenges: Engine used for the single recheck when the input is missing.
    """

    def __init__(
        self,
        page: Page,
        settings: InteractionSettings,
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
    # Lookup helpers
    # ------------------------------------------------------------------

    async def first_match(self, locators: LocatorSet, *, visible: bool = False) -> tuple[str, Locator] | None:
        """Return ``(selector, locator)`` for the first probe present on the page."""
        for probe in locators:
            loc = self.page.locator(probe.selector).first
            try:
                if await loc.count() == 0:
                    continue
                if visible and not await loc.is_visible():
                    continue
            except PlaywrightError:
                continue
            return probe.selector, loc
        return None

    async def _wait_for(
        self, locators: LocatorSet, timeout_sec: float, poll_sec: float, *, visible: bool = False
    ) -> tuple[str, Locator] | None:
        deadline = self._clock() + timeout_sec
        while True:
            match = await self.first_match(locators, visible=visible)
            if match is not None:
                return match
            if self._clock() >= deadline:
                return None
            await self._sleep(poll_sec)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def locate_input(self) -> str:
        """Return the selector of the chat input.

        Raises:
            LocatorNotFound: If no input probe matches after one challenge
                recheck and retry.
        """
        s = self.settings
        match = await self._wait_for(INPUT_AREA, s.input_timeout_sec, s.input_poll_sec, visible=True)
        if match is None:
            logger.warning("Chat input not found after %.0fs — rechecking for challenges", s.input_timeout_sec)
            if self.challenges is not None:
                await self.challenges.check_and_handle()
            match = await self._wait_for(INPUT_AREA, s.input_retry_timeout_sec, s.input_poll_sec, visible=True)
        if match is None:
            waited_ms = int((s.input_timeout_sec + s.input_retry_timeout_sec) * 1000)
            raise LocatorNotFound(INPUT_AREA.name, waited_ms)

        selector, _ = match
        logger.debug("Chat input matched %s", selector)
        return selector

    async def insert_text(self, selector: str, text: str) -> None:
        """Put *text* into the input at *selector* so the page's listeners fire."""
        kind = await self.page.evaluate(load_asset(INPUT_KIND), selector)
        if kind is None:
            raise LocatorNotFound(INPUT_AREA.name, 0)

        if kind == "rich":
            await self.page.evaluate(load_asset(CLEAR_RICH), selector)
            await self.page.keyboard.insert_text(text)
        else:
            await self.page.evaluate(load_asset(FILL_PLAIN), {"selector": selector, "text": text})
        logger.debug("Inserted %d chars into %s input", len(text), kind)

    async def toggle(self, mode: str) -> bool:
        """Enable *mode* (``think`` or ``deep-search``) if it is not already on.

        Returns:
            ``True`` if the control was clicked.
        """
        locators = MODE_TOGGLES.get(mode)
        if locators is None:
            raise ValueError(f"Unknown mode: {mode}")

        match = await self.first_match(locators)
        if match is None:
            logger.warning("%s toggle not found — continuing without it", mode)
            return False

        selector, loc = match
        if await _is_active(loc):
            logger.info("%s mode already enabled", mode)
            return False

        await loc.click()
        await self._sleep(self.settings.toggle_settle_sec)
        logger.info("%s mode enabled (%s)", mode, selector)
        return True

    async def submit(self, input_selector: str) -> bool:
        """Click the submit control, or press Enter in the input if none becomes enabled.

        Returns:
            ``True`` if a submit control was clicked, ``False`` on the Enter fallback.
        """
        s = self.settings
        deadline = self._clock() + s.submit_timeout_sec
        clicked = False
        while not clicked:
            for probe in SUBMIT_CONTROL:
                loc = self.page.locator(probe.selector).first
                try:
                    if await loc.count() == 0 or not await loc.is_enabled():
                        continue
                    await loc.click()
                except PlaywrightError as exc:
                    logger.debug("Submit probe %s failed: %s", probe.selector, exc)
                    continue
                logger.debug("Submitted via %s", probe.selector)
                clicked = True
                break
            if clicked or self._clock() >= deadline:
                break
            await self._sleep(s.submit_poll_sec)

        if not clicked:
            logger.info("No enabled submit control — pressing Enter")
            await self.page.locator(input_selector).first.focus()
            await self.page.keyboard.press("Enter")

        await self._sleep(s.post_submit_settle_sec)
        return clicked


async def _is_active(loc: Locator) -> bool:
    if await loc.get_attribute("aria-pressed") == "true":
        return True
    classes = (await loc.get_attribute("class") or "").split()
    if "active" in classes:
        return True
    return await loc.get_attribute("data-active") == "true"
