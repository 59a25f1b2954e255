"""Secondary artifacts: generated images and read-aloud transcripts."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
from playwright.async_api import Error as PlaywrightError

from grokpilot.browser.assets import SPEAK, load_asset

if TYPE_CHECKING:
    from grokpilot.browser.capture import ResponseCapture

logger = logging.getLogger(__name__)

AUDIO_SUFFIXES = (".mp3", ".wav")
TEXT_SUFFIXES = (".txt", ".md", "")

_AUDIO_NOTE = (
    "NOTE: grok.com web does not support audio file export.\n"
    "The response text has been saved below.\n"
    "Use any local TTS tool to convert it to audio:\n"
    "  macOS:   say -f this-file.txt -o output.aiff\n"
    "  Linux:   espeak-ng -f this-file.txt -w output.wav\n"
)


async def save_image(url: str, output_path: str | Path, *, timeout: float = 60.0) -> Path | None:
    """Download *url* to *output_path*.

    ``blob:`` URLs live only inside the page and cannot be fetched; they are
    logged for manual saving and ``None`` is returned.

    Raises:
        httpx.HTTPError: If the download fails.
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if not url.startswith(("http://", "https://")):
        logger.warning("Image is a page-local URL — open the browser to save it manually: %s", url[:120])
        return None

    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        resp = await client.get(url)
        resp.raise_for_status()
    path.write_bytes(resp.content)
    logger.info("Image saved to: %s (%d bytes)", path, len(resp.content))
    return path


def write_transcript(output_path: str | Path, text: str, *, now: datetime | None = None) -> Path:
    """Write the read-aloud transcript and return the path actually written.

    ``.txt``/``.md``/no extension get a header; ``.mp3``/``.wav`` are written
    to a ``.txt`` sibling with an explanatory note; anything else gets the
    raw text.
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()

    if suffix in TEXT_SUFFIXES:
        stamp = (now or datetime.now(timezone.utc)).isoformat()
        content = "\n".join(
            [
                f"# Grok Read Aloud — {stamp}",
                "",
                text,
                "",
                "---",
                "Generated by grokpilot --read-aloud",
                "Web Speech API was used to read this text in Chrome.",
            ]
        )
    elif suffix in AUDIO_SUFFIXES:
        path = path.with_suffix(".txt")
        content = f"{_AUDIO_NOTE}\nResponse text:\n\n{text}"
        logger.warning("Audio export is not supported — saving text to %s instead", path)
    else:
        content = text

    path.write_text(content, encoding="utf-8")
    return path


async def read_aloud(capture: ResponseCapture, output_path: str | Path) -> Path | None:
    """Speak the last response in the page and save its transcript.

    Returns:
        The transcript path, or ``None`` if there is no response text.
    """
    text = await capture.last_response_text()
    if not text:
        logger.warning("No response text found to read aloud")
        return None

    logger.info("Reading %d chars aloud via Web Speech API", len(text))
    try:
        result = await capture.page.evaluate(load_asset(SPEAK), text)
    except PlaywrightError as exc:
        result = {"ok": False, "reason": str(exc)}
    if not result or not result.get("ok"):
        reason = (result or {}).get("reason", "unknown")
        logger.warning("Speech failed: %s — saving transcript only", reason)

    path = write_transcript(output_path, text)
    logger.info("Read-aloud transcript saved to: %s", path)
    return path
