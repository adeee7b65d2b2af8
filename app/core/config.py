# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Postgres connection string; sqlite:// works for local runs)
      - JWT_SECRET (signing secret used to verify bearer tokens)

    Optional:
      - SMTP_* (only needed when notifications are enabled)
    """

    PROJECT_NAME: str = "Verdant Marketplace API"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # DB config
    DATABASE_URL: str

    # JWT verification (backend-side)
    JWT_SECRET: str
    JWT_ALG: str = "HS256"

    # Business policy
    DEFAULT_CURRENCY: str = "PKR"
    ORDER_NUMBER_PREFIX: str = "PO"
    BOOKING_NUMBER_PREFIX: str = "BK"
    BOOKING_CANCELLATION_WINDOW_HOURS: int = 24
    BOOKING_REJECTION_WINDOW_HOURS: int = 12

    # Stats handlers run after the primary commit and are retried this many times
    STATS_MAX_ATTEMPTS: int = 3

    # Email notifications
    NOTIFICATIONS_ENABLED: bool = False
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM_EMAIL: str | None = None
    SMTP_FROM_NAME: str = "Verdant Marketplace"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
