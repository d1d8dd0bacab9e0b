"""
Database Configuration and Session Management
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from idempotency_guard.config import settings
import structlog

logger = structlog.get_logger(__name__)

engine = None
SessionLocal = None


def init_db(database_url=None):
    """
    Initialize database connection.

    Args:
        database_url: Overrides settings.database_url (used by tests and scripts)

    Returns:
        Configured sessionmaker, or None if no database URL is configured
    """
    global engine, SessionLocal

    url = database_url or settings.database_url
    if not url:
        logger.warning("database_not_configured", reason="DATABASE_URL missing")
        return None

    logger.info("database_connecting")
    engine_kwargs = {"pool_pre_ping": True}
    if not url.startswith("sqlite"):
        engine_kwargs.update(pool_size=5, max_overflow=10)

    engine = create_engine(url, **engine_kwargs)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    logger.info("database_connected", dialect=engine.dialect.name)
    return SessionLocal


# Base class for all models
Base = declarative_base()
