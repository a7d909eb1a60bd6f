"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from jobqueue.constants import (
    DEFAULT_LOCK_TIMEOUT_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PRIORITY,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./jobqueue.db"
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_auto_create: bool = True

    # Queue semantics
    lock_timeout_seconds: int = DEFAULT_LOCK_TIMEOUT_SECONDS
    default_priority: int = DEFAULT_PRIORITY
    default_max_attempts: int = DEFAULT_MAX_ATTEMPTS
    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = 500

    # Worker Configuration
    worker_id: str | None = None
    worker_poll_interval_seconds: float = 1.0

    # Reaper Configuration
    reaper_interval_seconds: int = 30

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # Observability
    otel_enabled: bool = False
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "jobqueue"
    log_level: str = "INFO"
    log_format: str = "json"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
