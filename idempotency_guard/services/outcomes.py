"""
Begin Outcomes

Result of IdempotencyCoordinator.begin(). Callers branch on `kind` instead of
catching exceptions for the expected duplicate cases.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class OutcomeKind(str, Enum):
    STARTED = "started"  # Caller owns execution and must complete() or abort()
    ALREADY_DONE = "already_done"  # Skip execution, use `result`
    ALREADY_IN_PROGRESS = "already_in_progress"  # Retryable conflict


@dataclass(frozen=True)
class BeginOutcome:
    kind: OutcomeKind
    use_case: str
    key: str
    result: Optional[Any] = None

    @classmethod
    def started(cls, use_case: str, key: str) -> "BeginOutcome":
        return cls(OutcomeKind.STARTED, use_case, key)

    @classmethod
    def already_done(cls, use_case: str, key: str, result: Any) -> "BeginOutcome":
        return cls(OutcomeKind.ALREADY_DONE, use_case, key, result)

    @classmethod
    def already_in_progress(cls, use_case: str, key: str) -> "BeginOutcome":
        return cls(OutcomeKind.ALREADY_IN_PROGRESS, use_case, key)

    @property
    def is_started(self) -> bool:
        return self.kind is OutcomeKind.STARTED

    @property
    def is_already_done(self) -> bool:
        return self.kind is OutcomeKind.ALREADY_DONE

    @property
    def is_already_in_progress(self) -> bool:
        return self.kind is OutcomeKind.ALREADY_IN_PROGRESS
