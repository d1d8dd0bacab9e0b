"""
Alembic environment for the idempotency_records table.

The URL comes from DATABASE_URL when set, otherwise from sqlalchemy.url in
the ini file passed to alembic.
"""

from logging.config import fileConfig
import os
import sys

from alembic import context
from sqlalchemy import engine_from_config, pool

sys.path.insert(0, os.path.realpath(os.path.join(os.path.dirname(__file__), '..')))

from idempotency_guard.config import settings
from idempotency_guard.database import Base
from idempotency_guard.models import IdempotencyRecordRow  # noqa: F401  registers the table

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def database_url():
    url = settings.database_url or config.get_main_option("sqlalchemy.url")
    # psycopg3 driver
    if url and url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def run_offline():
    """Emit SQL without connecting."""
    context.configure(
        url=database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online():
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = database_url()
    engine = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
