"""
Idempotency Coordinator
Begin/complete/abort protocol guaranteeing at-most-once execution per key
"""

from typing import Any, Callable, Optional, TypeVar

import structlog

from idempotency_guard.services.errors import (
    UnknownIdempotencyKeyError,
    UseCaseAlreadyInProgressError,
)
from idempotency_guard.services.keys import KeyDeriver
from idempotency_guard.services.outcomes import BeginOutcome
from idempotency_guard.services.persistence.base import IdempotencyStatus, IdempotencyStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class IdempotencyCoordinator:
    """
    Stateless coordinator over an IdempotencyStore.

    All state lives in the store; any number of coordinators in any number of
    processes may share one durable store. Mutual exclusion comes from the
    store's atomic conditional insert, the coordinator takes no locks.

    Usage:
        coordinator = IdempotencyCoordinator(store)

        outcome = coordinator.begin("create-user", payload)
        if outcome.is_already_done:
            return outcome.result
        if outcome.is_already_in_progress:
            return conflict_response()

        try:
            result = create_user(payload)
        except Exception:
            coordinator.abort("create-user", payload)
            raise
        coordinator.complete("create-user", payload, result)
        return result
    """

    def __init__(self, store: IdempotencyStore, key_deriver: Optional[KeyDeriver] = None):
        """
        Initialize coordinator.

        Args:
            store: Backend holding the idempotency records
            key_deriver: Key derivation, defaults to MD5 over canonical JSON
        """
        self.store = store
        self.key_deriver = key_deriver or KeyDeriver()
        self.logger = logger.bind(service="idempotency")

    def begin(self, use_case: str, payload: Any) -> BeginOutcome:
        """
        Claim execution of a use case for this input.

        Args:
            use_case: Logical operation name
            payload: Use case input the key is derived from

        Returns:
            STARTED if the caller must now execute and complete() or abort(),
            ALREADY_DONE with the cached result, or ALREADY_IN_PROGRESS

        Raises:
            UnknownIdempotencyKeyError: the blocking record vanished or expired before it could be read
            PersistenceError: backend failure
        """
        key = self.key_deriver.derive(use_case, payload)
        log = self.logger.bind(use_case=use_case, key=key)

        if self.store.conditional_insert(use_case, key, IdempotencyStatus.IN_PROGRESS):
            log.info("idempotency_started")
            return BeginOutcome.started(use_case, key)

        record = self.store.read(use_case, key)
        if record is None:
            log.warning("idempotency_key_vanished")
            raise UnknownIdempotencyKeyError(use_case, key)

        # Expired between the rejected insert and the read: logically absent
        if record.is_expired(self.store.now()):
            log.warning("idempotency_key_expired", expiration=record.expiration)
            raise UnknownIdempotencyKeyError(use_case, key)

        if record.status is IdempotencyStatus.COMPLETED:
            log.info("idempotency_duplicate_completed")
            return BeginOutcome.already_done(use_case, key, record.result_data)

        log.info("idempotency_duplicate_in_progress", expiration=record.expiration)
        return BeginOutcome.already_in_progress(use_case, key)

    def complete(self, use_case: str, payload: Any, result: Any) -> None:
        """
        Mark the use case completed and cache its result.

        Raises:
            IdempotencyRecordNotFoundError: no record to complete (never begun,
                aborted, or purged after expiry). The use case itself succeeded.
            PersistenceError: backend failure
        """
        key = self.key_deriver.derive(use_case, payload)
        self.store.conditional_update(use_case, key, IdempotencyStatus.COMPLETED, result)
        self.logger.info("idempotency_completed", use_case=use_case, key=key)

    def abort(self, use_case: str, payload: Any) -> None:
        """
        Drop the record so a later begin() starts afresh.

        Safe to call whenever execution fails or is abandoned, including when
        the record has already expired or been removed.
        """
        key = self.key_deriver.derive(use_case, payload)
        self.store.delete(use_case, key)
        self.logger.info("idempotency_aborted", use_case=use_case, key=key)

    def run(self, use_case: str, payload: Any, operation: Callable[[Any], T]) -> T:
        """
        Execute `operation(payload)` at most once for this input.

        A completed duplicate returns the cached result without calling the
        operation. If the operation raises, the record is aborted and the
        exception re-raised.

        Raises:
            UseCaseAlreadyInProgressError: another caller is executing this input
        """
        outcome = self.begin(use_case, payload)

        if outcome.is_already_done:
            return outcome.result
        if outcome.is_already_in_progress:
            raise UseCaseAlreadyInProgressError(use_case, outcome.key)

        try:
            result = operation(payload)
        except Exception as e:
            self.logger.warning(
                "idempotency_use_case_failed",
                use_case=use_case,
                key=outcome.key,
                error=str(e),
            )
            self.abort(use_case, payload)
            raise

        self.complete(use_case, payload, result)
        return result
