"""
Persistence Module
Store contract, backend variants and backend selection from settings
"""

from idempotency_guard.services.persistence.base import (
    IdempotencyRecord,
    IdempotencyStatus,
    IdempotencyStore,
    StoreTTL,
    epoch_millis,
)
from idempotency_guard.services.persistence.memory import InMemoryIdempotencyStore


def build_store(settings=None) -> IdempotencyStore:
    """
    Construct the store named by settings.store_backend.

    SQL and DynamoDB dependencies are imported only for the backend in use.

    Args:
        settings: Settings instance, defaults to idempotency_guard.config.settings

    Returns:
        IdempotencyStore

    Raises:
        ValueError: unknown backend name or missing DATABASE_URL
    """
    if settings is None:
        from idempotency_guard.config import settings

    ttl = StoreTTL(
        in_progress_seconds=settings.in_progress_ttl_seconds,
        completed_seconds=settings.completed_ttl_seconds,
    )
    backend = settings.store_backend.lower()

    if backend == "memory":
        return InMemoryIdempotencyStore(ttl=ttl)

    if backend == "sql":
        from idempotency_guard.database import init_db
        from idempotency_guard.services.persistence.sql import SQLIdempotencyStore

        session_factory = init_db(settings.database_url)
        if session_factory is None:
            raise ValueError("store_backend 'sql' requires DATABASE_URL")
        return SQLIdempotencyStore(session_factory, ttl=ttl)

    if backend == "dynamodb":
        import boto3
        from idempotency_guard.services.persistence.dynamodb import DynamoDBIdempotencyStore

        client = boto3.client(
            "dynamodb",
            region_name=settings.aws_region,
            endpoint_url=settings.dynamodb_endpoint_url,
        )
        return DynamoDBIdempotencyStore(client, settings.dynamodb_table_name, ttl=ttl)

    raise ValueError(f"Unknown store backend: {settings.store_backend!r}")


__all__ = [
    "IdempotencyRecord",
    "IdempotencyStatus",
    "IdempotencyStore",
    "StoreTTL",
    "epoch_millis",
    "InMemoryIdempotencyStore",
    "build_store",
]
