"""
IdempotencyRecordRow Model
Stores one idempotency record per (use case, key) for the SQL store
"""

from sqlalchemy import BigInteger, Column, DateTime, JSON, String, Index
from sqlalchemy.sql import func
from idempotency_guard.database import Base


class IdempotencyRecordRow(Base):
    """
    Idempotency record storage.

    The composite primary key (use_case, key) is the record identity and the
    conflict target of the conditional insert. Expiration is stored as epoch
    milliseconds so the insert precondition can compare it against a single
    bound parameter on every dialect.
    """
    __tablename__ = "idempotency_records"

    # Identity
    use_case = Column(String(255), primary_key=True)
    key = Column(String(255), primary_key=True)

    # Lifecycle
    status = Column(String(20), nullable=False)  # 'in progress' | 'completed'
    result_data = Column(JSON, nullable=True)

    # Timestamps
    expiration = Column(BigInteger, nullable=False)  # epoch milliseconds
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Index for purge queries
    __table_args__ = (
        Index('ix_idempotency_records_expiration', 'expiration'),
    )

    def __repr__(self):
        return (
            f"<IdempotencyRecordRow(use_case='{self.use_case}', key='{self.key}', "
            f"status='{self.status}', expiration={self.expiration})>"
        )
