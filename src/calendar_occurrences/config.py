"""Configuration management for the occurrence engine."""

from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .utils.exceptions import ConfigurationError

load_dotenv()


class AppConfig(BaseSettings):
    """Application configuration."""

    # Storage
    database_url: str = Field(
        default="sqlite:///calendar.db", validation_alias="DATABASE_URL"
    )
    data_file: Optional[Path] = Field(default=None, validation_alias="CALENDAR_DATA_FILE")

    # Expansion
    # Largest move of an override's start; the loader pads its window by it
    max_override_shift_days: int = Field(
        default=7, ge=0, validation_alias="MAX_OVERRIDE_SHIFT_DAYS"
    )
    default_duration_minutes: int = Field(
        default=60, ge=0, validation_alias="DEFAULT_DURATION_MINUTES"
    )
    expansion_workers: int = Field(default=1, ge=1, validation_alias="EXPANSION_WORKERS")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: Optional[Path] = Field(default=None, validation_alias="LOG_FILE")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_parse_none_str="",  # Treat empty string as None
    )

    @property
    def max_override_shift(self) -> timedelta:
        return timedelta(days=self.max_override_shift_days)

    @property
    def pad(self) -> timedelta:
        """Padding applied around a query range when loading records."""
        return self.max_override_shift


def load_config() -> AppConfig:
    """
    Load configuration from the environment and ``.env``.

    Raises:
        ConfigurationError: If a setting has an invalid value
    """
    try:
        return AppConfig()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
