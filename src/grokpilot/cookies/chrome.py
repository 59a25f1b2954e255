"""Read and decrypt cookies from a Chrome profile's ``Cookies`` SQLite store.

Chrome keeps cookie values AES-128-CBC encrypted on macOS and Linux:

* the key is PBKDF2-HMAC-SHA1 over a platform secret, salt ``saltysalt``,
  16 bytes long, 1003 iterations on macOS (secret from the "Chrome Safe
  Storage" keychain item) and 1 iteration on Linux (built-in ``peanuts``
  secret when no keyring is in use);
* ciphertext is prefixed with a ``v10`` / ``v11`` version marker and uses an
  IV of sixteen spaces;
* stores with ``meta.version >= 24`` prepend a SHA-256 digest of the host to
  the plaintext.

Windows stores use DPAPI and are not decrypted; such rows are skipped.

The live database is never opened in place: it is copied (with any ``-wal``
or ``-journal`` sidecar) into a private ``mkdtemp`` directory, opened
read-only, and the directory is removed on every exit path.
"""

from __future__ import annotations

import logging
import os
import shutil
import sqlite3
import subprocess
import sys
import tempfile
from contextlib import closing
from pathlib import Path

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from grokpilot.exceptions import DecryptionSkipped
from grokpilot.models.run import Credential

logger = logging.getLogger(__name__)

# Microseconds between 1601-01-01 (Chrome/Windows epoch) and 1970-01-01.
CHROME_EPOCH_OFFSET_US = 11_644_473_600_000_000

SALT = b"saltysalt"
IV = b" " * 16
KEY_LENGTH = 16
MAC_ITERATIONS = 1003
LINUX_ITERATIONS = 1
LINUX_DEFAULT_SECRET = b"peanuts"
VERSION_PREFIXES: tuple[bytes, ...] = (b"v10", b"v11")

# meta.version from which plaintext carries a 32-byte host digest prefix
_HOST_DIGEST_DB_VERSION = 24
_HOST_DIGEST_LEN = 32

# Chrome journal files copied next to the snapshot when present
_SIDECAR_SUFFIXES = ("-wal", "-journal")

_COOKIE_QUERY = """
    SELECT name, value, host_key, path, is_secure, is_httponly, expires_utc, encrypted_value
    FROM cookies
    WHERE host_key LIKE ?
"""


# ---------------------------------------------------------------------------
# Key derivation and decryption
# ---------------------------------------------------------------------------


def derive_key(secret: bytes, iterations: int) -> bytes:
    """Derive the 16-byte AES key Chrome uses for cookie encryption."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA1(),
        length=KEY_LENGTH,
        salt=SALT,
        iterations=iterations,
    )
    return kdf.derive(secret)


def decrypt_value(name: str, encrypted: bytes, key: bytes, *, strip_host_digest: bool = False) -> str:
    """Decrypt a single ``encrypted_value`` blob.

    Raises:
        DecryptionSkipped: If the prefix is unknown, the padding is invalid,
            or the plaintext is not UTF-8.
    """
    if len(encrypted) < 3:
        raise DecryptionSkipped(name, "ciphertext too short")
    prefix = encrypted[:3]
    if prefix not in VERSION_PREFIXES:
        raise DecryptionSkipped(name, f"unknown version prefix {prefix!r}")

    body = encrypted[3:]
    if not body or len(body) % 16:
        raise DecryptionSkipped(name, "ciphertext is not block aligned")

    decryptor = Cipher(algorithms.AES(key), modes.CBC(IV)).decryptor()
    padded = decryptor.update(body) + decryptor.finalize()
    unpadder = padding.PKCS7(128).unpadder()
    try:
        plaintext = unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise DecryptionSkipped(name, "bad padding (wrong key?)") from exc

    if strip_host_digest:
        plaintext = plaintext[_HOST_DIGEST_LEN:]
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionSkipped(name, "plaintext is not UTF-8") from exc


def chrome_time_to_unix(expires_utc: int) -> int | None:
    """Convert Chrome's microseconds-since-1601 timestamp to Unix seconds.

    Returns ``None`` for session cookies (``expires_utc == 0``).
    """
    if not expires_utc or expires_utc <= 0:
        return None
    return (expires_utc - CHROME_EPOCH_OFFSET_US) // 1_000_000


def keychain_key(platform: str = sys.platform, timeout: float = 5.0) -> bytes | None:
    """Return the derived cookie key for the host platform, or ``None``."""
    if platform == "darwin":
        try:
            proc = subprocess.run(
                ["security", "find-generic-password", "-w", "-s", "Chrome Safe Storage"],
                capture_output=True,
                text=True,
                timeout=timeout,
                check=True,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning("Could not read Chrome Safe Storage from keychain: %s", exc)
            return None
        return derive_key(proc.stdout.strip().encode("utf-8"), MAC_ITERATIONS)
    if platform.startswith("linux"):
        return derive_key(LINUX_DEFAULT_SECRET, LINUX_ITERATIONS)
    logger.debug("No cookie decryption support on platform %s", platform)
    return None


# ---------------------------------------------------------------------------
# Profile discovery
# ---------------------------------------------------------------------------


def default_cookie_paths(
    platform: str = sys.platform,
    home: Path | None = None,
    local_app_data: str | None = None,
) -> list[Path]:
    """Candidate ``Cookies`` databases for Chrome-family browsers."""
    home = home or Path.home()
    if platform == "darwin":
        support = home / "Library" / "Application Support"
        return [
            support / "Google/Chrome/Default/Cookies",
            support / "Google/Chrome/Profile 1/Cookies",
            support / "Chromium/Default/Cookies",
            support / "Microsoft Edge/Default/Cookies",
        ]
    if platform.startswith("linux"):
        return [
            home / ".config/google-chrome/Default/Cookies",
            home / ".config/chromium/Default/Cookies",
            home / "snap/chromium/common/chromium/Default/Cookies",
        ]
    if platform == "win32":
        local = Path(local_app_data or os.environ.get("LOCALAPPDATA") or home / "AppData/Local")
        return [
            local / "Google/Chrome/User Data/Default/Cookies",
            local / "Microsoft/Edge/User Data/Default/Cookies",
        ]
    return []


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class ChromeCookieReader:
    """Extract cookies for a domain from a Chrome ``Cookies`` database.

    Args:
        key: Pre-derived AES key. When omitted, the platform key is looked
            up lazily on the first encrypted row.
        platform: Platform name used for key lookup (``sys.platform`` form).
        keychain_timeout: Seconds to wait for the macOS keychain CLI.
    """

    def __init__(
        self,
        key: bytes | None = None,
        *,
        platform: str = sys.platform,
        keychain_timeout: float = 5.0,
    ) -> None:
        self._key = key
        self._key_resolved = key is not None
        self._platform = platform
        self._keychain_timeout = keychain_timeout

    @property
    def key(self) -> bytes | None:
        if not self._key_resolved:
            self._key = keychain_key(self._platform, self._keychain_timeout)
            self._key_resolved = True
            if self._key is None:
                logger.warning("No Chrome cookie key available — encrypted cookies will be skipped")
        return self._key

    def read(self, cookie_path: str | Path, domain: str) -> list[Credential] | None:
        """Return cookies whose host matches *domain*, or ``None`` if unreadable."""
        source = Path(cookie_path)
        if not source.is_file():
            logger.debug("Cookie DB not found: %s", source)
            return None

        tmp_dir = tempfile.mkdtemp(prefix="grokpilot-cookies-")
        try:
            snapshot = Path(tmp_dir) / "cookies.db"
            try:
                shutil.copyfile(source, snapshot)
                # Rows Chrome has not checkpointed yet live only in the sidecars.
                for suffix in _SIDECAR_SUFFIXES:
                    sidecar = source.with_name(source.name + suffix)
                    if sidecar.is_file():
                        shutil.copyfile(sidecar, snapshot.with_name(snapshot.name + suffix))
            except OSError as exc:
                logger.warning("Could not copy cookie DB %s: %s", source, exc)
                return None
            try:
                with closing(sqlite3.connect(f"{snapshot.as_uri()}?mode=ro", uri=True)) as conn:
                    strip_digest = _db_version(conn) >= _HOST_DIGEST_DB_VERSION
                    rows = conn.execute(_COOKIE_QUERY, (f"%{domain}%",)).fetchall()
            except sqlite3.Error as exc:
                logger.warning("Could not read cookie DB %s: %s", source, exc)
                return None
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

        cookies = [c for c in (self._row_to_credential(row, strip_digest) for row in rows) if c is not None]
        logger.info("Loaded %d/%d cookies for %s from %s", len(cookies), len(rows), domain, source)
        return cookies

    def _row_to_credential(self, row: tuple, strip_digest: bool) -> Credential | None:
        name, value, host_key, path, is_secure, is_httponly, expires_utc, encrypted = row
        if not value and encrypted:
            key = self.key
            if key is None:
                logger.debug("Skipping encrypted cookie %s: no key", name)
                return None
            try:
                value = decrypt_value(name, bytes(encrypted), key, strip_host_digest=strip_digest)
            except DecryptionSkipped as exc:
                logger.debug("%s", exc)
                return None
        if not value:
            return None
        return Credential(
            name=name,
            value=value,
            domain=host_key,
            path=path or "/",
            secure=bool(is_secure),
            http_only=bool(is_httponly),
            expires=chrome_time_to_unix(expires_utc),
        )


def _db_version(conn: sqlite3.Connection) -> int:
    try:
        row = conn.execute("SELECT value FROM meta WHERE key = 'version'").fetchone()
    except sqlite3.Error:
        return 0
    try:
        return int(row[0]) if row else 0
    except (TypeError, ValueError):
        return 0
