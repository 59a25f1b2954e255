"""Inline and file-based cookie payloads.

A payload is a JSON array of exported cookies (or a single cookie object),
optionally base64-encoded::

    [{"name": "auth_token", "value": "...", "domain": ".x.com", "httpOnly": true}]
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from pathlib import Path

from pydantic import ValidationError

from grokpilot.exceptions import CookiePayloadError
from grokpilot.models.run import Credential

logger = logging.getLogger(__name__)

AUTO_COOKIE_FILES: tuple[str, ...] = ("cookies.json", "cookies.base64")

AUTH_DOMAINS: tuple[str, ...] = ("grok.com", "x.com", "twitter.com")


def parse_cookie_payload(raw: str) -> list[Credential]:
    """Parse a raw or base64-encoded JSON cookie payload.

    Raises:
        CookiePayloadError: If the payload is not valid cookie JSON.
    """
    text = raw.strip()
    if not text.startswith(("[", "{")):
        try:
            text = base64.b64decode(text).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError, ValueError):
            logger.debug("Cookie payload is not base64 — parsing as-is")

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CookiePayloadError(f"Invalid cookie JSON: {exc}. Expected an array of cookie objects.") from exc

    items = parsed if isinstance(parsed, list) else [parsed]
    try:
        return [Credential.model_validate(item) for item in items]
    except ValidationError as exc:
        raise CookiePayloadError(f"Invalid cookie entry: {exc}") from exc


def load_cookies_from_file(path: str | Path) -> list[Credential]:
    """Read and parse a cookie payload file.

    Raises:
        CookiePayloadError: If the file is unreadable or not valid cookie JSON.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise CookiePayloadError(f"Could not read cookie file {path}: {exc}") from exc
    return parse_cookie_payload(raw)


def auto_load_cookies(home_dir: Path) -> list[Credential] | None:
    """Load ``cookies.json`` or ``cookies.base64`` from *home_dir* if present."""
    for name in AUTO_COOKIE_FILES:
        candidate = home_dir / name
        if candidate.is_file():
            logger.debug("Auto-loading cookies from %s", candidate)
            return load_cookies_from_file(candidate)
    return None


def filter_auth_cookies(cookies: list[Credential], domains: tuple[str, ...] = AUTH_DOMAINS) -> list[Credential]:
    """Keep only cookies whose domain is one of *domains* or a subdomain of it."""
    kept = []
    for c in cookies:
        host = (c.domain or "").lower().lstrip(".")
        if any(host == d or host.endswith("." + d) for d in domains):
            kept.append(c)
    return kept
