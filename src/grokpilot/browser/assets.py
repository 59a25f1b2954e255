"""Versioned in-page JavaScript assets.

Every script evaluated in the page lives as a ``.js`` file under
``grokpilot/browser/js/`` and is loaded here by name. Function assets are
arrow-function expressions suitable for ``page.evaluate(asset, arg)``;
``stealth`` is a self-invoking init script for ``add_init_script``.
"""

from __future__ import annotations

from functools import lru_cache
from importlib.resources import files

ASSET_VERSION = "1"

STEALTH = "stealth"
PAGE_STATE = "page_state"
RESPONSE_TEXT = "response_text"
BUSY_STATE = "busy_state"
INPUT_KIND = "input_kind"
CLEAR_RICH = "clear_rich"
FILL_PLAIN = "fill_plain"
FIND_IMAGE = "find_image"
DOM_HINT = "dom_hint"
BODY_SNIPPET = "body_snippet"
SPEAK = "speak"

ALL_ASSETS: tuple[str, ...] = (
    STEALTH,
    PAGE_STATE,
    RESPONSE_TEXT,
    BUSY_STATE,
    INPUT_KIND,
    CLEAR_RICH,
    FILL_PLAIN,
    FIND_IMAGE,
    DOM_HINT,
    BODY_SNIPPET,
    SPEAK,
)


@lru_cache(maxsize=None)
def load_asset(name: str) -> str:
    """Return the source of asset *name*.

    Raises:
        KeyError: If *name* is not a known asset.
    """
    if name not in ALL_ASSETS:
        raise KeyError(f"Unknown browser asset: {name}")
    return files("grokpilot.browser").joinpath("js", f"{name}.js").read_text(encoding="utf-8")
