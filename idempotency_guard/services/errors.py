"""
Idempotency Errors

Protocol failures raised by the coordinator and the store backends. A
completed duplicate is not an error: begin() reports it as an outcome.
"""

from typing import Optional


class IdempotencyError(Exception):
    """Base class for all idempotency failures, carrying the record identity."""

    def __init__(self, message: str, use_case: Optional[str], key: Optional[str]):
        self.use_case = use_case
        self.key = key
        super().__init__(message)


class UseCaseAlreadyInProgressError(IdempotencyError):
    """Another caller holds a live in-progress record for this key."""

    def __init__(self, use_case: str, key: str):
        super().__init__("The use case is already in progress", use_case, key)


class UnknownIdempotencyKeyError(IdempotencyError):
    """
    Insert was rejected but the record was gone by the time it was read.

    Happens when a concurrent abort or sweep removes the record between the
    two calls. A fresh begin is expected to succeed.
    """

    def __init__(self, use_case: str, key: str):
        super().__init__("Unknown idempotency key", use_case, key)


class IdempotencyRecordNotFoundError(IdempotencyError):
    """complete() targeted a record that does not exist."""

    def __init__(self, use_case: str, key: str):
        super().__init__("Idempotency record not found", use_case, key)


class UnableToRemoveIdempotencyKeyError(IdempotencyError):
    """The backend could not carry out a delete. Not raised for absent records."""

    def __init__(self, use_case: str, key: str, reason: Optional[str] = None):
        self.reason = reason
        message = "Unable to remove idempotency key"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, use_case, key)


class PersistenceError(IdempotencyError):
    """
    Infrastructure failure of a backend call (timeout, throttling, transport).

    The message is the backend's own message; the backend exception is kept as
    `original` and chained as __cause__. use_case and key are None for
    operations spanning many records, such as a purge.
    """

    def __init__(self, use_case: Optional[str], key: Optional[str], original: Exception):
        self.original = original
        super().__init__(str(original), use_case, key)


class InvalidIdempotencyKeyError(IdempotencyError):
    """A hash calculator produced something that cannot be used as a key."""

    def __init__(self, use_case: str, key):
        super().__init__(
            f"Hash calculator returned an invalid key: {key!r}", use_case, str(key)
        )
