"""
Database Models
"""

from idempotency_guard.models.idempotency_record import IdempotencyRecordRow

__all__ = [
    "IdempotencyRecordRow",
]
