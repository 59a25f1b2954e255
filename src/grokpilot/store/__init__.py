"""grokpilot store: on-disk run history (session records and prompt bundles)."""

from __future__ import annotations

from pathlib import Path

from grokpilot.store.session_store import SessionStore, generate_id, validate_id

__all__ = ["SessionStore", "build_session_store", "generate_id", "validate_id"]


def build_session_store(sessions_dir: str | Path | None = None) -> SessionStore:
    """Factory: return a ``SessionStore`` honouring grokpilot settings.

    When *sessions_dir* is ``None`` the store lives in
    ``get_settings().sessions_dir`` (``<home>/sessions``).
    """
    if sessions_dir is None:
        from grokpilot.settings import get_settings

        sessions_dir = get_settings().sessions_dir
    return SessionStore(sessions_dir)
