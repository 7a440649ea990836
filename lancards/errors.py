"""
LanCards Errors — Typed Failures Surfaced to Callers
=====================================================
Only failures with no further fallback reach the caller. Recoverable
ones are absorbed by the nearest layer:

    TranscriptionSession   — swallows benign recognizer cancellation
    GenerationOrchestrator — absorbs provider and schema failures
    ContentStore           — restores in-memory state on a failed write

Provider failures are not exceptions at all: they come back as a
ProviderResponse carrying an error and a ProviderErrorKind.
"""

from __future__ import annotations


class LanCardsError(Exception):
    """Root of every error raised by the lancards package."""


# ─────────────────────────────────────────────────────────────
#  Capture
# ─────────────────────────────────────────────────────────────

class PermissionDenied(LanCardsError):
    """Microphone or speech-recognition permission is missing."""

    def __init__(self, message: str = ""):
        super().__init__(
            message or "Please enable microphone and speech recognition "
                       "permissions to use voice features."
        )


class RecordingError(LanCardsError):
    """The audio session or recognizer could not be started."""


class RecognizerInterrupted(LanCardsError):
    """Recognition was canceled while the session was still recording.

    Recoverable: the session has been cleaned up and start() may be
    called again.
    """

    recoverable = True


class RecognizerUnavailable(LanCardsError):
    """The speech recognizer is temporarily unavailable.

    Recoverable by a caller-directed retry; nothing retries automatically.
    """

    recoverable = True


# ─────────────────────────────────────────────────────────────
#  Generation
# ─────────────────────────────────────────────────────────────

class ValidationError(LanCardsError):
    """Input rejected before any provider was invoked."""


class GenerationFailed(LanCardsError):
    """Every provider in the fallback chain failed."""

    def __init__(self, message: str, attempts: list = None):
        super().__init__(message)
        self.attempts = list(attempts or [])


class GenerationCancelled(LanCardsError):
    """The caller cancelled generation or its deadline passed."""


# ─────────────────────────────────────────────────────────────
#  Persistence
# ─────────────────────────────────────────────────────────────

class PersistenceFailure(LanCardsError):
    """Reading or writing the destinations file failed."""
