# linework/errors.py
"""
Exception taxonomy for linework.

Transient remote failures are retried inside the resilient call wrapper and
only surface here once retries are exhausted. Every error raised to the
top-level caller carries an ErrorKind so quota exhaustion can be told apart
from ordinary failures without parsing messages.
"""

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from linework.models.jobs import BatchState


class ErrorKind(Enum):
    """Classification of a failed remote call."""

    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"
    FATAL = "fatal"

    @property
    def transient(self) -> bool:
        return self is not ErrorKind.FATAL


class LineworkError(Exception):
    """Base class for all linework errors."""


class ValidationError(LineworkError, ValueError):
    """User input failed validation (topic, batch ID, dimensions)."""


class InvalidTransitionError(LineworkError, ValueError):
    """A job state change violates the job lifecycle."""


class BatchNotFoundError(LineworkError, LookupError):
    """No batch (or no job inside a batch) matches the given identifier."""


class GenerationError(LineworkError):
    """
    Failure of a generation request, tagged with its classification.

    Attributes:
        kind: ErrorKind of the underlying failure
        is_quota: True when the failure means the remote quota is exhausted
    """

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.FATAL) -> None:
        super().__init__(message)
        self.kind = kind

    @property
    def is_quota(self) -> bool:
        return self.kind is ErrorKind.RATE_LIMITED


class QuotaExhaustedError(GenerationError):
    """
    Rate limit persisted past every retry; all further dispatch was halted.

    Attributes:
        batch: Snapshot of the batch at the moment the run stopped (if any)
    """

    def __init__(self, message: str, batch: "BatchState | None" = None) -> None:
        super().__init__(message, kind=ErrorKind.RATE_LIMITED)
        self.batch = batch


class PlanningError(GenerationError):
    """The planning request failed; no batch state was created."""


class EmptyPlanError(PlanningError):
    """The planning request succeeded but returned zero page specs."""


class PlanParseError(PlanningError):
    """The planning response was not valid JSON."""


class NoImageDataError(GenerationError):
    """The image request succeeded but the response carried no image part."""
