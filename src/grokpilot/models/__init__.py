"""Data models shared across grokpilot modules."""

from grokpilot.models.run import Credential, RunOptions, RunResult, SessionRecord, SessionStatus

__all__ = ["Credential", "RunOptions", "RunResult", "SessionRecord", "SessionStatus"]
