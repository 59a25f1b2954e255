"""Page navigation with a bounded load wait and a settle delay.

grok.com keeps long-lived connections open, so ``networkidle`` never
arrives; the load event is awaited for a bounded time and a timeout is only
logged. Hard network failures (DNS, refused connection, TLS) surface as
``NavigationError``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from grokpilot.exceptions import NavigationError

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

# Playwright error substrings that indicate the target is unreachable.
_NON_RETRYABLE_ERRORS: tuple[str, ...] = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_INTERNET_DISCONNECTED",
    "ERR_CONNECTION_REFUSED",
    "ERR_CONNECTION_RESET",
    "ERR_CONNECTION_CLOSED",
    "ERR_SSL_PROTOCOL_ERROR",
    "ERR_CERT_AUTHORITY_INVALID",
    "ERR_ADDRESS_UNREACHABLE",
)


async def navigate(
    page: Page,
    url: str,
    *,
    timeout_ms: int = 15_000,
    settle_sec: float = 2.5,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """Go to *url*, wait for ``load`` up to *timeout_ms*, then settle.

    Raises:
        NavigationError: If the URL is unreachable.
    """
    try:
        logger.debug("goto %s (wait_until=load, timeout=%dms)", url, timeout_ms)
        await page.goto(url, wait_until="load", timeout=timeout_ms)
    except PlaywrightTimeout:
        logger.warning("Load event for %s not seen within %dms — continuing", url, timeout_ms)
    except PlaywrightError as exc:
        error_msg = str(exc)
        for pattern in _NON_RETRYABLE_ERRORS:
            if pattern in error_msg:
                reason = pattern.replace("ERR_", "").replace("_", " ").lower()
                logger.warning("Navigation to %s failed (non-retryable): %s", url, pattern)
                raise NavigationError(url, reason) from exc
        raise

    await sleep(settle_sec)
