"""
Tagged failure values shared by the inference pipeline and the index synchronizer.

A single ``Failure`` value (kind + message + optional cause) describes every
failure the core can report. Callers branch on ``failure.kind`` instead of
catching exception subclasses. ``ServiceError`` is the one exception type used
where a failure has to unwind the stack (for example an invalid search query).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Failure categories surfaced by the core."""
    INVALID_INPUT = "invalid_input"
    GESTURE_STAGE_FAILURE = "gesture_stage_failure"
    CORRECTION_STAGE_FAILURE = "correction_stage_failure"
    INDEX_UNAVAILABLE = "index_unavailable"
    SYNC_EXHAUSTED = "sync_exhausted"


@dataclass(frozen=True)
class Failure:
    """
    A classified failure.

    Attributes:
        kind: Failure category
        message: Human-readable description, safe to show to API callers
        cause: Underlying exception, kept for logging only
    """
    kind: ErrorKind
    message: str
    cause: Optional[BaseException] = None

    @property
    def is_client_error(self) -> bool:
        return self.kind is ErrorKind.INVALID_INPUT

    def to_log_fields(self) -> dict:
        fields = {"failure_kind": self.kind.value, "failure_message": self.message}
        if self.cause is not None:
            fields["cause"] = repr(self.cause)
        return fields


class ServiceError(Exception):
    """Exception wrapper around a ``Failure``."""

    def __init__(self, failure: Failure):
        super().__init__(failure.message)
        self.failure = failure

    @property
    def kind(self) -> ErrorKind:
        return self.failure.kind

    @classmethod
    def of(
        cls,
        kind: ErrorKind,
        message: str,
        cause: Optional[BaseException] = None
    ) -> "ServiceError":
        return cls(Failure(kind=kind, message=message, cause=cause))
