"""Tests for response capture stability, grace and partial-result rules."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from grokpilot.browser.assets import BODY_SNIPPET, BUSY_STATE, FIND_IMAGE, RESPONSE_TEXT, load_asset
from grokpilot.browser.capture import ResponseCapture
from grokpilot.exceptions import CaptureTimeout
from grokpilot.settings.config import CaptureSettings

ANSWER = "The answer is forty-two, as computed."


class ScriptedPage:
    """Fake page answering asset evaluations from per-poll scripts.

    ``texts`` and ``busy`` are consumed one entry per poll; the last entry
    repeats once exhausted. ``texts`` may also be a callable producing each
    poll's text. A text of ``None`` means no response yet and an exception
    instance is raised from the read.
    """

    def __init__(self, texts, busy=(False,), snippet="", images=(None,)) -> None:
        self.texts = texts if callable(texts) else list(texts)
        self.busy = list(busy)
        self.images = list(images)
        self.snippet = snippet
        self.reads = 0
        self.read_args: list[dict] = []
        self.evaluate = AsyncMock(side_effect=self._evaluate)

    @staticmethod
    def _next(items: list):
        return items.pop(0) if len(items) > 1 else items[0]

    async def _evaluate(self, script, arg=None):
        if script == load_asset(RESPONSE_TEXT):
            self.reads += 1
            self.read_args.append(arg)
            text = self.texts() if callable(self.texts) else self._next(self.texts)
            if isinstance(text, Exception):
                raise text
            return None if text is None else {"text": text, "locator": "[data-testid=\"responseText\"]"}
        if script == load_asset(BUSY_STATE):
            return self._next(self.busy)
        if script == load_asset(BODY_SNIPPET):
            return self.snippet
        if script == load_asset(FIND_IMAGE):
            return self._next(self.images)
        return None


def _capture(page, clock, **kwargs) -> ResponseCapture:
    return ResponseCapture(page, CaptureSettings(), clock=clock, sleep=clock.sleep, **kwargs)


# ---------------------------------------------------------------------------
# capture
# ---------------------------------------------------------------------------


class TestCapture:
    """Stability, grace and timeout behaviour of the polling loop."""

    @pytest.mark.anyio
    async def test_returns_after_three_stable_polls(self, clock) -> None:
        page = ScriptedPage([ANSWER])
        result = await _capture(page, clock).capture(timeout_ms=10_000)

        assert result.text == ANSWER
        assert result.partial is False
        assert result.matched_locator == '[data-testid="responseText"]'
        # first sighting plus three unchanged polls
        assert page.reads == 4

    @pytest.mark.anyio
    async def test_growing_text_resets_stability(self, clock) -> None:
        page = ScriptedPage(["The answer", "The answer is", ANSWER])
        result = await _capture(page, clock).capture(timeout_ms=10_000)

        assert result.text == ANSWER
        assert page.reads == 6

    @pytest.mark.anyio
    async def test_busy_indicator_delays_completion(self, clock) -> None:
        page = ScriptedPage([ANSWER], busy=[True, True, True, True, True, True, False])
        result = await _capture(page, clock).capture(timeout_ms=10_000)

        assert result.text == ANSWER
        assert page.reads == 7

    @pytest.mark.anyio
    async def test_stuck_busy_indicator_overridden_after_grace(self, clock) -> None:
        start = clock.now
        page = ScriptedPage([ANSWER], busy=[True])
        result = await _capture(page, clock).capture(timeout_ms=60_000)

        assert result.text == ANSWER
        assert result.partial is False
        assert clock.now - start > 4.0
        assert clock.now - start < 60.0

    @pytest.mark.anyio
    async def test_timeout_with_text_returns_partial(self, clock) -> None:
        counter = iter(range(10_000))
        page = ScriptedPage(lambda: f"Streaming chunk {next(counter)}")

        result = await _capture(page, clock).capture(timeout_ms=3_000)

        assert result.partial is True
        assert result.text.startswith("Streaming chunk ")

    @pytest.mark.anyio
    async def test_timeout_without_text_raises_with_snippet(self, clock) -> None:
        page = ScriptedPage([None], snippet="Something went wrong")
        challenges = MagicMock()
        challenges.check_and_handle = AsyncMock()

        with pytest.raises(CaptureTimeout) as exc_info:
            await _capture(page, clock, challenges=challenges).capture(timeout_ms=2_000)

        assert exc_info.value.timeout_ms == 2_000
        assert exc_info.value.page_snippet == "Something went wrong"
        assert "Something went wrong" in str(exc_info.value)
        challenges.check_and_handle.assert_awaited()

    @pytest.mark.anyio
    async def test_poll_error_is_retried(self, clock) -> None:
        page = ScriptedPage([PlaywrightError("Execution context was destroyed"), ANSWER])
        result = await _capture(page, clock).capture(timeout_ms=10_000)

        assert result.text == ANSWER
        assert page.reads == 5

    @pytest.mark.anyio
    async def test_default_timeout_from_settings(self, clock) -> None:
        start = clock.now
        page = ScriptedPage([None])
        with pytest.raises(CaptureTimeout) as exc_info:
            await _capture(page, clock).capture()
        assert exc_info.value.timeout_ms == 300_000
        assert clock.now - start >= 300.0


# ---------------------------------------------------------------------------
# Probes
# ---------------------------------------------------------------------------


class TestProbes:
    """Single-shot reads used outside the capture loop."""

    @pytest.mark.anyio
    async def test_last_response_text_uses_short_minimum(self, clock) -> None:
        page = ScriptedPage(["Short one."])
        assert await _capture(page, clock).last_response_text() == "Short one."
        assert page.read_args[0]["minLength"] == 10

    @pytest.mark.anyio
    async def test_last_response_text_none_on_error(self, clock) -> None:
        page = MagicMock()
        page.evaluate = AsyncMock(side_effect=PlaywrightError("Target closed"))
        assert await _capture(page, clock).last_response_text() is None

    @pytest.mark.anyio
    async def test_read_passes_settings_lengths(self, clock) -> None:
        page = ScriptedPage([ANSWER])
        await _capture(page, clock).read_response()
        args = page.read_args[0]
        assert args["minLength"] == 20
        assert args["fallbackMinLength"] == 50
        assert args["selectors"][0] == '[class*="response"][class*="content"]'

    @pytest.mark.anyio
    async def test_page_snippet_empty_on_error(self, clock) -> None:
        page = MagicMock()
        page.evaluate = AsyncMock(side_effect=PlaywrightError("Target closed"))
        assert await _capture(page, clock).page_snippet() == ""


# ---------------------------------------------------------------------------
# capture_image
# ---------------------------------------------------------------------------


class TestCaptureImage:
    """Polling for a generated image."""

    @pytest.mark.anyio
    async def test_returns_image_source(self, clock) -> None:
        page = ScriptedPage([None], images=[None, None, "https://assets.grok.com/gen/1.png"])
        src = await _capture(page, clock).capture_image(timeout_ms=10_000)
        assert src == "https://assets.grok.com/gen/1.png"
        assert clock.sleeps == [1.0, 1.0]

    @pytest.mark.anyio
    async def test_times_out_with_none(self, clock) -> None:
        page = ScriptedPage([None], images=[None])
        assert await _capture(page, clock).capture_image(timeout_ms=3_000) is None
