"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # amoCRM account
    AMO_DOMAIN: str = "https://example.amocrm.ru"
    AMO_ACCESS_TOKEN: str = ""  # Long-lived token; seeds the TokenStore on startup
    AMO_REQUEST_TIMEOUT: float = 30.0

    # Static custom field ids (None = discover by field code)
    AMO_PHONE_FIELD_ID: int | None = None
    AMO_EMAIL_FIELD_ID: int | None = None
    AMO_POSITION_FIELD_ID: int | None = None

    # Lead placement
    AMO_PIPELINE_ID: int = 10582926  # "AI caller" pipeline
    AMO_STATUS_ID: int = 83463326  # "First contact" stage

    # Note rendering
    NOTE_TIMEZONE_LABEL: str = "МСК"
    NOTE_TIMEZONE_OFFSET_HOURS: int = 3

    # Monitoring
    SENTRY_DSN: str = ""


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
