"""
SQL Idempotency Store
Relational backend using INSERT ... ON CONFLICT for the conditional insert
"""

from typing import Any, Optional

import structlog
from sqlalchemy import delete, null, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from idempotency_guard.models.idempotency_record import IdempotencyRecordRow
from idempotency_guard.services.errors import IdempotencyRecordNotFoundError, PersistenceError
from idempotency_guard.services.persistence.base import (
    IdempotencyRecord,
    IdempotencyStatus,
    IdempotencyStore,
)

logger = structlog.get_logger(__name__)

# Dialects whose insert() supports ON CONFLICT DO UPDATE ... WHERE
UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class SQLIdempotencyStore(IdempotencyStore):
    """
    PostgreSQL/SQLite backed store, safe to share between processes.

    Each call runs in its own session and transaction so the caller's unit of
    work never holds idempotency rows locked.
    """

    def __init__(self, session_factory: sessionmaker, ttl=None, clock=None):
        """
        Initialize SQL store.

        Args:
            session_factory: SQLAlchemy sessionmaker (not session - creates independent transactions)
            ttl: Record lifetimes
            clock: Epoch-milliseconds clock
        """
        super().__init__(ttl=ttl, clock=clock)
        self.session_factory = session_factory
        self.logger = logger.bind(store="sql")

    def _upsert_insert(self, session: Session):
        dialect = session.get_bind().dialect.name
        try:
            return UPSERT_INSERTS[dialect]
        except KeyError:
            raise NotImplementedError(f"Conditional insert is not supported on dialect '{dialect}'")

    def conditional_insert(self, use_case: str, key: str, status: IdempotencyStatus) -> bool:
        """
        Insert a record, overwriting an expired one in the same statement.

        ON CONFLICT DO UPDATE ... WHERE expiration <= now touches the existing
        row only when it has expired; a live row leaves rowcount at 0.
        """
        session: Session = self.session_factory()
        try:
            now = self.now()
            insert = self._upsert_insert(session)

            stmt = insert(IdempotencyRecordRow).values(
                use_case=use_case,
                key=key,
                status=status.value,
                expiration=self.in_progress_expiration(now),
                created_at=self.created_at(now),
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["use_case", "key"],
                set_={
                    "status": stmt.excluded.status,
                    "result_data": null(),
                    "expiration": stmt.excluded.expiration,
                    "created_at": stmt.excluded.created_at,
                },
                where=IdempotencyRecordRow.expiration <= now,
            )

            result_proxy = session.execute(stmt)
            session.commit()

            inserted = result_proxy.rowcount > 0
            if inserted:
                self.logger.info("idempotency_record_inserted", use_case=use_case, key=key)
            else:
                self.logger.info("idempotency_insert_rejected", use_case=use_case, key=key)

            return inserted

        except SQLAlchemyError as e:
            self.logger.error("idempotency_insert_failed", use_case=use_case, key=key, error=str(e))
            session.rollback()
            raise PersistenceError(use_case, key, e) from e
        finally:
            session.close()

    def read(self, use_case: str, key: str) -> Optional[IdempotencyRecord]:
        session: Session = self.session_factory()
        try:
            row = session.get(IdempotencyRecordRow, (use_case, key))
            if row is None:
                return None

            return IdempotencyRecord(
                use_case=row.use_case,
                key=row.key,
                status=IdempotencyStatus(row.status),
                expiration=row.expiration,
                created_at=row.created_at,
                result_data=row.result_data,
            )

        except SQLAlchemyError as e:
            self.logger.error("idempotency_read_failed", use_case=use_case, key=key, error=str(e))
            raise PersistenceError(use_case, key, e) from e
        finally:
            session.close()

    def conditional_update(self, use_case: str, key: str, status: IdempotencyStatus, result: Any) -> None:
        session: Session = self.session_factory()
        try:
            stmt = (
                update(IdempotencyRecordRow)
                .where(
                    IdempotencyRecordRow.use_case == use_case,
                    IdempotencyRecordRow.key == key,
                )
                .values(
                    status=status.value,
                    result_data=result,
                    expiration=self.completed_expiration(self.now()),
                )
            )
            result_proxy = session.execute(stmt)
            session.commit()

        except SQLAlchemyError as e:
            self.logger.error("idempotency_update_failed", use_case=use_case, key=key, error=str(e))
            session.rollback()
            raise PersistenceError(use_case, key, e) from e
        finally:
            session.close()

        if result_proxy.rowcount == 0:
            raise IdempotencyRecordNotFoundError(use_case, key)

        self.logger.info("idempotency_record_updated", use_case=use_case, key=key, status=status.value)

    def delete(self, use_case: str, key: str) -> None:
        session: Session = self.session_factory()
        try:
            result_proxy = session.execute(
                delete(IdempotencyRecordRow).where(
                    IdempotencyRecordRow.use_case == use_case,
                    IdempotencyRecordRow.key == key,
                )
            )
            session.commit()

            self.logger.info(
                "idempotency_record_deleted",
                use_case=use_case,
                key=key,
                existed=result_proxy.rowcount > 0,
            )

        except SQLAlchemyError as e:
            self.logger.error("idempotency_delete_failed", use_case=use_case, key=key, error=str(e))
            session.rollback()
            raise PersistenceError(use_case, key, e) from e
        finally:
            session.close()

    def purge_expired(self) -> int:
        """
        Delete all expired idempotency records.

        Only keeps the table small: the insert precondition already treats
        expired rows as absent.

        Returns:
            Number of records deleted
        """
        session: Session = self.session_factory()
        try:
            deleted_count = session.execute(
                delete(IdempotencyRecordRow).where(IdempotencyRecordRow.expiration <= self.now())
            ).rowcount

            session.commit()

            self.logger.info("idempotency_purge_complete", deleted_count=deleted_count)
            return deleted_count

        except SQLAlchemyError as e:
            self.logger.error("idempotency_purge_failed", error=str(e))
            session.rollback()
            raise PersistenceError(None, None, e) from e
        finally:
            session.close()
