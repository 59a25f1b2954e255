"""grokpilot exception hierarchy."""

from __future__ import annotations


class GrokPilotError(Exception):
    """Base exception for all grokpilot errors."""


class TransportError(GrokPilotError):
    """Raised when the DevTools channel to Chrome cannot be opened or is lost."""


class NavigationError(GrokPilotError):
    """Raised when the target URL cannot be reached at all (DNS, refused, TLS).

    Attributes:
        url: The URL that failed.
        reason: Short human-readable cause.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Could not load {url}: {reason}")


class ChallengeUnresolved(GrokPilotError):
    """Raised when a page obstacle blocks the run and cannot be cleared.

    Attributes:
        kind: The ``ChallengeKind`` value that could not be resolved.
        remediation: Human-readable steps the user can take.
    """

    def __init__(self, kind: str, message: str, remediation: str = "") -> None:
        self.kind = kind
        self.remediation = remediation
        text = message if not remediation else f"{message}\n{remediation}"
        super().__init__(text)


class LocatorNotFound(GrokPilotError):
    """Raised when no probe of a locator set matched within its wait bound."""

    def __init__(self, locator_set: str, waited_ms: int) -> None:
        self.locator_set = locator_set
        self.waited_ms = waited_ms
        super().__init__(f"No element matched locator set '{locator_set}' after {waited_ms}ms")


class CaptureTimeout(GrokPilotError):
    """Raised when no response text was observed before the capture deadline.

    Attributes:
        timeout_ms: The capture budget that elapsed.
        page_snippet: Leading body text of the page for diagnosis.
    """

    def __init__(self, timeout_ms: int, page_snippet: str = "") -> None:
        self.timeout_ms = timeout_ms
        self.page_snippet = page_snippet
        message = f"Response capture timed out after {timeout_ms}ms"
        if page_snippet:
            message += f"\nPage preview:\n{page_snippet}"
        super().__init__(message)


class DecryptionSkipped(GrokPilotError):
    """Raised for a single cookie row that cannot be decrypted.

    Never escapes the cookie reader; the row is dropped and the read continues.
    """

    def __init__(self, cookie_name: str, reason: str) -> None:
        self.cookie_name = cookie_name
        self.reason = reason
        super().__init__(f"Skipping encrypted cookie {cookie_name}: {reason}")


class CookiePayloadError(GrokPilotError):
    """Raised when inline or file-based cookie JSON cannot be parsed."""


class InvalidSessionId(GrokPilotError):
    """Raised when a session ID is malformed or resolves outside the sessions dir."""


class ArtifactError(GrokPilotError):
    """Raised when a run artifact (image, transcript) cannot be written locally."""
