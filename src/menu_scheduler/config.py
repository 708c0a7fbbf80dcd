"""Application configuration."""

import os
from datetime import date
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    schedule_api_base_url: str
    restaurant_id: str = "rest-test-001"
    cache_dir: Path | None = Path(".menu_scheduler_cache")
    cache_ttl_minutes: float = 30
    api_timeout_seconds: float | None = None
    auto_schedule_min: int = 2
    auto_schedule_max: int = 4
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_week_date(raw: str | None) -> date | None:
    """Parse an ISO date from a query string; blank means no date."""
    if raw is None:
        return None
    cleaned = raw.strip()
    if not cleaned:
        return None
    try:
        return date.fromisoformat(cleaned[:10])
    except ValueError:
        return None
