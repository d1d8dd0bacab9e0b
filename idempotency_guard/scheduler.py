"""
APScheduler Background Jobs

Periodic purge of expired idempotency records. Expired records are already
treated as absent by every store; the purge only bounds storage growth.
"""

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from idempotency_guard.config import settings as default_settings
from idempotency_guard.services.persistence.base import IdempotencyStore

logger = structlog.get_logger(__name__)


def run_scheduled_purge(store: IdempotencyStore):
    """
    Wrapper function for the scheduled purge job.

    Failures are logged and swallowed so one bad run does not unschedule the job.
    """
    try:
        deleted_count = store.purge_expired()
        logger.info("purge_completed", deleted_count=deleted_count)

    except Exception as e:
        logger.error("purge_crashed", error=str(e), exc_info=True)


def start_scheduler(store: IdempotencyStore, settings=None) -> BackgroundScheduler:
    """
    Start background scheduler with the purge job.

    Args:
        store: Store whose expired records are purged
        settings: Settings instance (the scheduler is not started in testing)

    Returns:
        BackgroundScheduler instance
    """
    settings = settings or default_settings
    scheduler = BackgroundScheduler(timezone="UTC")

    if settings.environment == "testing":
        logger.info("scheduler_skipped", reason="testing_environment")
        return scheduler

    scheduler.add_job(
        run_scheduled_purge,
        trigger=IntervalTrigger(minutes=settings.purge_interval_minutes),
        args=[store],
        id="idempotency_purge",
        name="Expired Idempotency Record Purge",
        replace_existing=True
    )
    logger.info("job_registered", job="idempotency_purge", interval_minutes=settings.purge_interval_minutes)

    scheduler.start()
    logger.info("scheduler_started")
    return scheduler
