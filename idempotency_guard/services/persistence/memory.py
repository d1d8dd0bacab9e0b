"""
In-Memory Idempotency Store

Process-local reference backend. The lock makes check-and-set atomic between
threads of one process; it cannot coordinate separate processes.
"""

from dataclasses import replace
from typing import Any, Dict, Optional, Tuple
import threading

import structlog

from idempotency_guard.services.errors import IdempotencyRecordNotFoundError
from idempotency_guard.services.persistence.base import (
    IdempotencyRecord,
    IdempotencyStatus,
    IdempotencyStore,
)

logger = structlog.get_logger(__name__)


class InMemoryIdempotencyStore(IdempotencyStore):
    """Dict-backed store for tests and single-process deployments."""

    def __init__(self, ttl=None, clock=None):
        super().__init__(ttl=ttl, clock=clock)
        self._records: Dict[Tuple[str, str], IdempotencyRecord] = {}
        self._lock = threading.Lock()
        self.logger = logger.bind(store="memory")

    def conditional_insert(self, use_case: str, key: str, status: IdempotencyStatus) -> bool:
        with self._lock:
            now = self.now()
            existing = self._records.get((use_case, key))
            if existing is not None and not existing.is_expired(now):
                self.logger.info("idempotency_insert_rejected", use_case=use_case, key=key)
                return False

            self._records[(use_case, key)] = IdempotencyRecord(
                use_case=use_case,
                key=key,
                status=status,
                expiration=self.in_progress_expiration(now),
                created_at=self.created_at(now),
            )

        self.logger.info(
            "idempotency_record_inserted",
            use_case=use_case,
            key=key,
            replaced_expired=existing is not None,
        )
        return True

    def read(self, use_case: str, key: str) -> Optional[IdempotencyRecord]:
        with self._lock:
            return self._records.get((use_case, key))

    def conditional_update(self, use_case: str, key: str, status: IdempotencyStatus, result: Any) -> None:
        with self._lock:
            existing = self._records.get((use_case, key))
            if existing is None:
                raise IdempotencyRecordNotFoundError(use_case, key)

            self._records[(use_case, key)] = replace(
                existing,
                status=status,
                result_data=result,
                expiration=self.completed_expiration(self.now()),
            )

        self.logger.info("idempotency_record_updated", use_case=use_case, key=key, status=status.value)

    def delete(self, use_case: str, key: str) -> None:
        with self._lock:
            removed = self._records.pop((use_case, key), None)

        self.logger.info("idempotency_record_deleted", use_case=use_case, key=key, existed=removed is not None)

    def purge_expired(self) -> int:
        with self._lock:
            now = self.now()
            expired = [identity for identity, record in self._records.items() if record.is_expired(now)]
            for identity in expired:
                del self._records[identity]

        self.logger.info("idempotency_purge_complete", deleted_count=len(expired))
        return len(expired)

    def __len__(self):
        return len(self._records)
