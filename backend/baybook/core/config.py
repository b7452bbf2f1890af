# backend/baybook/core/config.py
import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_BACKEND_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    """Runtime configuration for the booking engine."""

    database_url: str = Field(default="sqlite+pysqlite:///./baybook.db")
    log_level: str = Field(default="INFO")

    # Locations without an explicit timezone fall back to this zone
    default_timezone: str = Field(default="America/New_York")

    # Reservation lifecycle
    reservation_hold_minutes: int = Field(default=2, ge=1)
    customer_cancellation_window_hours: int = Field(default=24, ge=0)
    temporary_payment_prefix: str = Field(default="temp_")
    expired_reservation_sweep_seconds: int = Field(default=60, ge=5)

    # Pricing bands
    pricing_increment_minutes: int = Field(default=15, ge=1, le=60)
    standard_rate_name: str = Field(default="Standard Rate")
    off_peak_rate_name: str = Field(default="Off-Peak Rate")
    standard_rate_start_hour: int = Field(default=9, ge=0, le=23)
    off_peak_rate_start_hour: int = Field(default=2, ge=0, le=23)
    currency: str = Field(default="usd")

    # Leagues
    default_players_per_bay: int = Field(default=2, ge=1)
    default_attendance_cutoff_hours: int = Field(default=8, ge=0)
    attendance_cutoff_sweep_seconds: int = Field(default=300, ge=5)

    # Payments
    stripe_secret_key: Optional[SecretStr] = Field(default=None)
    stripe_timeout_seconds: int = Field(default=8, ge=1)

    # Background jobs
    celery_broker_url: str = Field(default="redis://localhost:6379/0")

    model_config = SettingsConfigDict(
        env_file=str(_BACKEND_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in logging.getLevelNamesMapping():
            logger.warning("Unknown LOG_LEVEL=%s; defaulting to INFO", value)
            return "INFO"
        return normalized


settings = Settings()
