"""Browser anti-detection: launch flags and pre-navigation stealth patches.

Two layers hide the automation from grok.com's bot checks:

- Chrome command-line flags that drop the ``AutomationControlled`` blink
  feature and the background/first-run behaviour a scripted profile shows.
- An init script (``js/stealth.js``) registered on the browser context so it
  runs in every frame before any page script: hides ``navigator.webdriver``,
  fakes plugins/languages/``window.chrome``, patches the notifications
  permission query, removes driver globals and spoofs the WebGL vendor.

Usage::

    flags = build_launch_flags(port=9222, headless=False)
    ...
    await apply_stealth_scripts(context)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from grokpilot.browser.assets import ASSET_VERSION, STEALTH, load_asset

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext

logger = logging.getLogger(__name__)

_BASE_FLAGS: tuple[str, ...] = (
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-default-apps",
    "--disable-blink-features=AutomationControlled",
    "--disable-background-networking",
    "--disable-background-timer-throttling",
    "--disable-renderer-backgrounding",
    "--disable-backgrounding-occluded-windows",
    "--disable-ipc-flooding-protection",
    "--metrics-recording-only",
    "--safebrowsing-disable-auto-update",
    "--disable-sync",
    "--disable-extensions",
    "--start-maximized",
)

_HEADLESS_FLAGS: tuple[str, ...] = (
    "--headless=new",
    "--disable-dev-shm-usage",
    "--no-sandbox",
)


def build_launch_flags(
    *,
    port: int,
    headless: bool = False,
    profile_dir: str | Path | None = None,
    window_size: str = "1280,800",
) -> list[str]:
    """Return the Chrome command-line flags for an anti-detection launch.

    Args:
        port: Remote debugging port the DevTools channel will use.
        headless: Run with the new headless mode.
        profile_dir: Persistent ``--user-data-dir``; a throwaway profile is
            used by Chrome when omitted.
        window_size: ``"W,H"`` initial window size.
    """
    flags = [f"--remote-debugging-port={port}", *_BASE_FLAGS, f"--window-size={window_size}"]
    if profile_dir:
        flags.append(f"--user-data-dir={profile_dir}")
    if headless:
        flags.extend(_HEADLESS_FLAGS)
    return flags


async def apply_stealth_scripts(context: BrowserContext) -> None:
    """Register the stealth patch on *context*.

    Call this **before** navigating so the patch runs ahead of page scripts
    in every frame.
    """
    await context.add_init_script(load_asset(STEALTH))
    logger.debug("Stealth scripts injected (assets v%s)", ASSET_VERSION)
