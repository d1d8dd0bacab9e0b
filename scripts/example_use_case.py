#!/usr/bin/env python3
"""
Call-site example: run a use case through the idempotency coordinator.

Run: python scripts/example_use_case.py

Uses the backend selected by STORE_BACKEND (memory by default). Running it
twice against a durable backend shows the cached result being returned.

Exit codes:
  0 - Result produced (fresh or cached)
  1 - Same input is still being processed elsewhere (HTTP 409 equivalent)
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import structlog

from idempotency_guard import (
    IdempotencyCoordinator,
    KeyDeriver,
    UseCaseAlreadyInProgressError,
    build_store,
)
from idempotency_guard.services.keys import canonical_json, md5_fingerprint
from idempotency_guard.services.monitoring import setup_logging

logger = structlog.get_logger(__name__)

USE_CASE = "my-use-case"


def user_fingerprint(payload: dict) -> str:
    # created_at differs between retries of the same request
    return md5_fingerprint(canonical_json({"name": payload["name"], "age": payload["age"]}))


def create_user(payload: dict) -> dict:
    return {"id": 1, "name": payload["name"], "age": payload["age"]}


def main() -> int:
    setup_logging()

    coordinator = IdempotencyCoordinator(
        build_store(),
        KeyDeriver(custom={USE_CASE: user_fingerprint}),
    )
    payload = {
        "name": "John Doe Dorian",
        "age": 43,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }

    try:
        result = coordinator.run(USE_CASE, payload, create_user)
    except UseCaseAlreadyInProgressError:
        logger.warning("use_case_still_running", use_case=USE_CASE)
        print(json.dumps({"code": 409, "message": "Use case is still being executed"}))
        return 1

    print(json.dumps(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
