"""
Structured JSON Logging
Configures structlog and the stdlib root logger to emit JSON lines
"""

import logging
import sys

import structlog
from pythonjsonlogger import jsonlogger

from idempotency_guard.config import settings


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter adding service and environment fields to every record.

    Applies to stdlib loggers (SQLAlchemy, botocore, APScheduler) so their
    output lines up with the structlog events.
    """

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['service'] = settings.service_name
        log_record['environment'] = settings.environment


def setup_logging(level=logging.INFO):
    """
    Configure structured JSON logging to stdout.

    Sets up:
    - structlog with ISO timestamps, log level and JSON rendering; values
      bound via structlog.contextvars are merged into every event
    - root stdlib logger with ServiceJsonFormatter on a stdout StreamHandler

    Args:
        level: Root log level

    Returns:
        logging.Handler: The configured handler (for testing)
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.JSONRenderer()
        ]
    )

    handler = logging.StreamHandler(sys.stdout)

    formatter = ServiceJsonFormatter(
        '%(timestamp)s %(level)s %(name)s %(message)s',
        rename_fields={
            'timestamp': 'asctime',
            'level': 'levelname'
        }
    )
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    return handler
