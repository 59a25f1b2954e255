"""Credential resolution: pick exactly one cookie source per run.

Priority (first non-empty source wins):

1. ``--inline-cookies`` payload
2. ``--inline-cookies-file`` payload
3. ``<home>/cookies.json`` or ``<home>/cookies.base64``
4. The host Chrome profile's cookie store (skipped in manual-login and
   attached modes, where the browser already holds its own session)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from grokpilot.cookies.chrome import ChromeCookieReader, default_cookie_paths
from grokpilot.cookies.payload import (
    auto_load_cookies,
    filter_auth_cookies,
    load_cookies_from_file,
    parse_cookie_payload,
)
from grokpilot.models.run import Credential, RunOptions

logger = logging.getLogger(__name__)


class CredentialSource:
    INLINE = "inline"
    INLINE_FILE = "inline-file"
    AUTO_FILE = "auto-file"
    CHROME_PROFILE = "chrome-profile"
    NONE = "none"


@dataclass(frozen=True)
class ResolvedCredentials:
    """The immutable credential set for one run and where it came from."""

    source: str
    cookies: tuple[Credential, ...] = ()
    origin: str = ""

    def __len__(self) -> int:
        return len(self.cookies)


def resolve_credentials(
    options: RunOptions,
    home_dir: Path,
    *,
    domains: list[str] | None = None,
    reader: ChromeCookieReader | None = None,
    cookie_paths: Callable[[], list[Path]] = default_cookie_paths,
) -> ResolvedCredentials:
    """Resolve the credential set for *options*.

    Raises:
        CookiePayloadError: If an explicitly supplied payload is invalid.
    """
    if options.inline_cookies:
        cookies = parse_cookie_payload(options.inline_cookies)
        logger.info("Using %d inline cookies", len(cookies))
        return ResolvedCredentials(CredentialSource.INLINE, tuple(cookies))

    if options.inline_cookies_file:
        cookies = load_cookies_from_file(options.inline_cookies_file)
        logger.info("Loaded %d cookies from %s", len(cookies), options.inline_cookies_file)
        return ResolvedCredentials(CredentialSource.INLINE_FILE, tuple(cookies), options.inline_cookies_file)

    auto = auto_load_cookies(home_dir)
    if auto:
        logger.info("Auto-loaded %d cookies from %s", len(auto), home_dir)
        return ResolvedCredentials(CredentialSource.AUTO_FILE, tuple(auto), str(home_dir))

    if not options.manual_login and not options.remote_chrome:
        candidates = [Path(options.cookie_path)] if options.cookie_path else cookie_paths()
        db_path = next((p for p in candidates if p.is_file()), None)
        if db_path is not None:
            reader = reader or ChromeCookieReader()
            wanted = tuple(domains or ["grok.com", "x.com"])
            found: list[Credential] = []
            for domain in wanted:
                found.extend(reader.read(db_path, domain) or [])
            # host_key LIKE %domain% also matches unrelated hosts (x.com in netflix.com)
            found = filter_auth_cookies(found, wanted)
            if found:
                logger.info("Read %d cookies from Chrome profile %s", len(found), db_path)
                return ResolvedCredentials(CredentialSource.CHROME_PROFILE, tuple(found), str(db_path))

    logger.info("No cookies found — relying on the browser's own session")
    return ResolvedCredentials(CredentialSource.NONE)
