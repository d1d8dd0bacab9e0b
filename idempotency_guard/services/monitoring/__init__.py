"""
Monitoring Module
Exports for structured logging
"""

from idempotency_guard.services.monitoring.logging import setup_logging, ServiceJsonFormatter

__all__ = [
    "setup_logging",
    "ServiceJsonFormatter",
]
