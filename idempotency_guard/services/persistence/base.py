"""
Idempotency Store Contract

Every backend implements the same four conditional-write primitives. The
coordinator's mutual exclusion rests entirely on conditional_insert being a
single atomic operation against the backend.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional
import time


class IdempotencyStatus(str, Enum):
    IN_PROGRESS = "in progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class StoreTTL:
    """Record lifetimes in seconds."""

    in_progress_seconds: int = 300
    completed_seconds: int = 86400


@dataclass(frozen=True)
class IdempotencyRecord:
    use_case: str
    key: str
    status: IdempotencyStatus
    expiration: int  # epoch milliseconds
    created_at: Optional[datetime] = None
    result_data: Optional[Any] = None

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expiration


def epoch_millis() -> int:
    return int(time.time() * 1000)


class IdempotencyStore(ABC):
    """
    Backend capability contract.

    Args:
        ttl: Lifetimes applied on insert and on completion
        clock: Returns the current time in epoch milliseconds
    """

    def __init__(self, ttl: Optional[StoreTTL] = None, clock: Optional[Callable[[], int]] = None):
        self.ttl = ttl or StoreTTL()
        self.clock = clock or epoch_millis

    def now(self) -> int:
        return self.clock()

    def in_progress_expiration(self, now_ms: int) -> int:
        return now_ms + self.ttl.in_progress_seconds * 1000

    def completed_expiration(self, now_ms: int) -> int:
        return now_ms + self.ttl.completed_seconds * 1000

    def created_at(self, now_ms: int) -> datetime:
        return datetime.fromtimestamp(now_ms / 1000, tz=timezone.utc)

    @abstractmethod
    def conditional_insert(self, use_case: str, key: str, status: IdempotencyStatus) -> bool:
        """
        Insert a record unless an active one exists.

        A record whose expiration has passed counts as absent and is
        overwritten, whether or not a background sweep has removed it yet.

        Returns:
            True if inserted, False if an active record blocked the insert
        """

    @abstractmethod
    def read(self, use_case: str, key: str) -> Optional[IdempotencyRecord]:
        """Return the stored record, or None if there is none."""

    @abstractmethod
    def conditional_update(self, use_case: str, key: str, status: IdempotencyStatus, result: Any) -> None:
        """
        Set status and result on an existing record and refresh its expiration.

        Raises:
            IdempotencyRecordNotFoundError: no record exists
        """

    @abstractmethod
    def delete(self, use_case: str, key: str) -> None:
        """Remove the record. Removing an absent record is not an error."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Remove expired records and return how many were removed."""
