"""On-disk session store for grokpilot runs.

Each run is one JSON file under ``<home>/sessions/`` named by a 16-hex-char
ID, with the prompt bundle stored beside it as ``<id>-bundle.md``. The
directory is created ``0700`` and files are written ``0600`` because
bundles may contain source code and session metadata may contain prompts.
"""

from __future__ import annotations

import json
import logging
import os
import re
import secrets
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from grokpilot.exceptions import InvalidSessionId
from grokpilot.models.run import SessionRecord

logger = logging.getLogger(__name__)

SESSION_ID_RE = re.compile(r"^[0-9a-f]{16}$")
_SESSION_FILE_RE = re.compile(r"^[0-9a-f]{16}(\.json|-bundle\.md)$")


def generate_id() -> str:
    """Return a fresh random 16-hex-char session ID."""
    return secrets.token_hex(8)


def validate_id(session_id: str) -> None:
    if not SESSION_ID_RE.match(session_id or ""):
        raise InvalidSessionId(f"Invalid session ID: {session_id!r}. Must be 16 hex characters.")


def _write_private(path: Path, text: str) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(text)
    os.chmod(path, 0o600)


class SessionStore:
    """Persist ``SessionRecord`` values and their prompt bundles.

    Args:
        sessions_dir: Directory holding the session files.
    """

    def __init__(self, sessions_dir: str | Path) -> None:
        self.sessions_dir = Path(sessions_dir)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _path(self, session_id: str, suffix: str) -> Path:
        validate_id(session_id)
        base = self.sessions_dir.resolve()
        resolved = (base / f"{session_id}{suffix}").resolve()
        if resolved.parent != base:
            raise InvalidSessionId(f"Session path escapes sessions directory: {resolved}")
        return resolved

    def record_path(self, session_id: str) -> Path:
        return self._path(session_id, ".json")

    def bundle_path(self, session_id: str) -> Path:
        return self._path(session_id, "-bundle.md")

    def _ensure_dir(self) -> None:
        self.sessions_dir.mkdir(parents=True, exist_ok=True, mode=0o700)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, record: SessionRecord) -> Path:
        self._ensure_dir()
        path = self.record_path(record.id)
        _write_private(path, json.dumps(record.to_dict(), indent=2))
        return path

    def save_bundle(self, session_id: str, text: str) -> Path:
        self._ensure_dir()
        path = self.bundle_path(session_id)
        _write_private(path, text)
        return path

    def update(self, session_id: str, **changes: Any) -> SessionRecord | None:
        """Apply *changes* to a stored record and refresh ``updated_at``.

        Returns:
            The updated record, or ``None`` if the session does not exist.
        """
        existing = self.load(session_id)
        if existing is None:
            return None
        updated = replace(existing, **changes, updated_at=datetime.now(timezone.utc).isoformat())
        self.save(updated)
        return updated

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load(self, session_id: str) -> SessionRecord | None:
        """Return the stored record, or ``None`` if it is missing or unreadable.

        Raises:
            InvalidSessionId: If *session_id* is malformed.
        """
        path = self.record_path(session_id)
        if not path.is_file():
            return None
        try:
            return SessionRecord.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError) as exc:
            logger.warning("Could not read session %s: %s", session_id, exc)
            return None

    def load_bundle(self, session_id: str) -> str | None:
        path = self.bundle_path(session_id)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def list(self, hours: float = 72) -> list[SessionRecord]:
        """Return records created within the last *hours*, newest first."""
        if not self.sessions_dir.is_dir():
            return []
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        records: list[SessionRecord] = []
        for path in self.sessions_dir.iterdir():
            if not _SESSION_FILE_RE.match(path.name) or path.suffix != ".json":
                continue
            try:
                record = SessionRecord.from_dict(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, ValueError, KeyError) as exc:
                logger.debug("Skipping unreadable session file %s: %s", path.name, exc)
                continue
            if record.created >= cutoff:
                records.append(record)
        records.sort(key=lambda r: r.created, reverse=True)
        return records

    def clear(self, hours: float = 168) -> int:
        """Delete session files last modified more than *hours* ago.

        Only files named like session records or bundles are touched.

        Returns:
            Number of files removed.
        """
        if not self.sessions_dir.is_dir():
            return 0
        cutoff = time.time() - hours * 3600
        removed = 0
        for path in self.sessions_dir.iterdir():
            if not _SESSION_FILE_RE.match(path.name):
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except OSError as exc:
                logger.debug("Could not remove %s: %s", path.name, exc)
        return removed
