"""Error taxonomy for the resource-lifecycle reconciler.

Every failure surfaced by the reconciler is one of the typed errors below so
that the caller (the declarative orchestrator) can decide what to do:

- Identity errors (InvalidSegmentError, MalformedKeyError) are input bugs.
- ResourceNotFoundError is silent convergence for read/delete, an error for
  update/import.
- ConflictError signals an out-of-band state change and is never retried.
- ThrottledError is only raised once the bounded retries are exhausted.
- RemoteFailureError and WaitTimeoutError carry the last remote status.
- OperationCanceledError propagates a cancellation request.

Remote transport errors are not typed by the adapters. They are classified
into an ErrorKind by a predicate supplied with each resource type.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a remote error."""

    NOT_FOUND = "not_found"
    THROTTLED = "throttled"
    CONFLICT = "conflict"
    OTHER = "other"


class ReconcileError(Exception):
    """Base class for all reconciler errors."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key

    def __str__(self) -> str:
        message = super().__str__()
        if self.key:
            return f"{message} (resource: {self.key})"
        return message


class InvalidSegmentError(ReconcileError):
    """Raised when an identifier segment is empty or contains the delimiter."""

    pass


class MalformedKeyError(ReconcileError):
    """Raised when a key does not split into the expected number of segments."""

    pass


class ResourceNotFoundError(ReconcileError):
    """Raised when the remote resource does not exist."""

    pass


class ConflictError(ReconcileError):
    """Raised when the remote reports a conflicting out-of-band change."""

    pass


class ThrottledError(ReconcileError):
    """Raised when a mutating call is still throttled after all retries."""

    pass


class RemoteFailureError(ReconcileError):
    """Raised when the resource enters a terminal failure status."""

    def __init__(self, message: str, *, key: str | None = None, status: str | None = None) -> None:
        super().__init__(message, key=key)
        self.status = status


class WaitTimeoutError(ReconcileError):
    """Raised when the deadline elapses before a terminal status is observed.

    The last observed status is kept so the caller can decide to re-poll
    or abandon the resource.
    """

    def __init__(
        self, message: str, *, key: str | None = None, last_status: str | None = None
    ) -> None:
        super().__init__(message, key=key)
        self.last_status = last_status


class OperationCanceledError(ReconcileError):
    """Raised when the caller requested cancellation."""

    pass


class RemoteCallError(ReconcileError):
    """Raised for a remote error that is not retryable.

    The original transport error is chained as __cause__.
    """

    def __init__(
        self, message: str, *, key: str | None = None, kind: ErrorKind = ErrorKind.OTHER
    ) -> None:
        super().__init__(message, key=key)
        self.kind = kind
