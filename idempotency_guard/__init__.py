"""
Idempotency Guard
At-most-once execution of use cases backed by a shared conditional-write store
"""

from idempotency_guard.services.idempotency import IdempotencyCoordinator
from idempotency_guard.services.keys import KeyDeriver, derive_key, md5_fingerprint
from idempotency_guard.services.outcomes import BeginOutcome, OutcomeKind
from idempotency_guard.services.persistence import (
    IdempotencyRecord,
    IdempotencyStatus,
    IdempotencyStore,
    InMemoryIdempotencyStore,
    StoreTTL,
    build_store,
)
from idempotency_guard.services.errors import (
    IdempotencyError,
    UseCaseAlreadyInProgressError,
    UnknownIdempotencyKeyError,
    IdempotencyRecordNotFoundError,
    UnableToRemoveIdempotencyKeyError,
    PersistenceError,
    InvalidIdempotencyKeyError,
)

__version__ = "0.1.0"

__all__ = [
    "IdempotencyCoordinator",
    "KeyDeriver",
    "derive_key",
    "md5_fingerprint",
    "BeginOutcome",
    "OutcomeKind",
    "IdempotencyRecord",
    "IdempotencyStatus",
    "IdempotencyStore",
    "InMemoryIdempotencyStore",
    "StoreTTL",
    "build_store",
    "IdempotencyError",
    "UseCaseAlreadyInProgressError",
    "UnknownIdempotencyKeyError",
    "IdempotencyRecordNotFoundError",
    "UnableToRemoveIdempotencyKeyError",
    "PersistenceError",
    "InvalidIdempotencyKeyError",
]
