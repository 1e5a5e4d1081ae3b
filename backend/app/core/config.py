# backend/app/core/config.py
import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import BRAND_NAME


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


_BACKEND_ROOT = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_BACKEND_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: str = Field(default=f"{BRAND_NAME} Booking API")
    environment: Literal["local", "development", "test", "staging", "production"] = Field(
        default="local", description="Deployment environment"
    )
    log_level: str = Field(default="INFO")

    # Document store
    database_url: str = Field(
        default=f"sqlite+pysqlite:///{_BACKEND_ROOT / 'service_booking.db'}",
        description="SQLAlchemy URL of the booking store",
    )
    store_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound for lock waits / pool checkout before a transient failure",
    )
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=5, ge=0)

    # Booking policy
    booking_horizon_days: int = Field(
        default=30, ge=0, description="How far ahead a new booking may be scheduled"
    )
    reschedule_horizon_days: int = Field(
        default=90, ge=0, description="How far ahead a booking may be moved"
    )
    booking_code_prefix: str = Field(default="BK", min_length=1, max_length=8)
    booking_code_start: int = Field(
        default=1000, ge=0, description="Sequence seed; first booking gets start + 1"
    )
    default_commission_percent: Decimal = Field(
        default=Decimal("30"),
        ge=0,
        le=100,
        description="Platform commission withheld from technician earnings",
    )
    max_discount_redemption_attempts: int = Field(default=3, ge=1)

    # Notifications
    notifications_enabled: bool = Field(default=True)

    @field_validator("database_url", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Hosted Postgres providers hand out postgres://; SQLAlchemy wants postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[len("postgres://") :]
        return v

    @field_validator("log_level", mode="after")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = (v or "INFO").upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level


settings = Settings()
