"""
Application Configuration
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Settings loaded from environment variables"""

    # Environment
    environment: str = "development"
    service_name: str = "idempotency-guard"

    # Store backend: "memory", "sql" or "dynamodb"
    store_backend: str = "memory"

    # Record lifetimes
    in_progress_ttl_seconds: int = 300  # Bounds blocking of duplicates after a crash
    completed_ttl_seconds: int = 86400  # How long cached results are served

    # Database (store_backend = "sql")
    database_url: Optional[str] = None

    # DynamoDB (store_backend = "dynamodb")
    dynamodb_table_name: str = "idempotency"
    aws_region: str = "us-east-1"
    dynamodb_endpoint_url: Optional[str] = None  # e.g. http://localhost:8000 for DynamoDB Local

    # Expired record sweep
    purge_interval_minutes: int = 60

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
