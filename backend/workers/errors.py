"""
Tagged error hierarchy for the refresh pipeline.

Callers branch on the exception class (or its ErrorKind), never on message
text. Messages on AdmissionError are user-facing and surfaced verbatim.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """What went wrong, independent of the message wording."""
    VALIDATION = "validation"
    ADMISSION = "admission"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    FATAL = "fatal"


class RefreshError(Exception):
    """Base class for all refresh pipeline errors."""
    kind: ErrorKind = ErrorKind.FATAL


class AdmissionError(RefreshError):
    """A new job was rejected at start time (already running / already ran today)."""
    kind = ErrorKind.ADMISSION


class JobNotFoundError(RefreshError):
    """No job with the given id exists (or it is not in the expected state)."""
    kind = ErrorKind.NOT_FOUND


class TransientFetchError(RefreshError):
    """Upstream transport/parse failure for one country; safe to retry."""
    kind = ErrorKind.TRANSIENT

    def __init__(self, country: str, message: str):
        super().__init__(message)
        self.country = country


class FatalJobError(RefreshError):
    """Orchestration cannot continue; the whole job is marked failed."""
    kind = ErrorKind.FATAL
