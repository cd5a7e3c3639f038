"""
Application configuration using Pydantic Settings.
Loads from environment variables and .env file.
"""

from datetime import datetime
from functools import lru_cache
from typing import Any, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "HauntQ"
    app_env: str = "development"  # development, staging, production
    debug: bool = True
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql://localhost:5432/hauntq"
    database_echo: bool = False

    # JWT Authentication
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24  # 1 day

    # Admin API
    admin_api_key: Optional[str] = None  # Set this for automated admin access

    # Scheduler hitting /api/cron/expire-reservations
    cron_secret: Optional[str] = None

    # Venue
    venue_timezone: str = "Asia/Ho_Chi_Minh"

    # Reservation policy
    max_reservation_attempts: int = 2
    reservation_minutes_per_spot: int = 5
    reservation_code_length: int = 6
    reservation_code_retries: int = 10

    # Store retry policy
    db_retry_attempts: int = 3
    db_retry_base_delay: float = 0.1

    # Customers holding these ticket types cannot pick a haunted house slot
    unsupported_ticket_types: list[str] = ["Juggler"]

    # After this moment customers can no longer change their spot (naive UTC)
    selection_deadline: Optional[datetime] = None

    @field_validator("unsupported_ticket_types", mode="before")
    @classmethod
    def _split_ticket_types(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def async_database_url(self) -> str:
        """Database URL rewritten for the async driver."""
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.database_url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
