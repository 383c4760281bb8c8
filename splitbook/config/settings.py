"""
Configuration Management for Splitbook

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The engine itself takes plain arguments; flows read these settings once
and pass the values down, so the pure functions stay testable without
any environment.
"""

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Balance engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPLITBOOK_",
        extra="ignore"
    )

    currency_code: str = Field(
        default="INR",
        min_length=3,
        max_length=3,
        description="ISO 4217 code reported on every balance summary"
    )
    minor_unit_places: int = Field(
        default=2,
        ge=0,
        le=4,
        description="Decimal places of the currency's minor unit (2 = paise)"
    )
    hide_zero_amount_edges: bool = Field(
        default=True,
        description="Leave zero-amount edges out of grouped display"
    )

    # Record store retries
    store_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per record store call before giving up"
    )
    store_retry_min_wait: float = Field(
        default=0.5,
        ge=0.0,
        description="Minimum backoff between attempts, in seconds"
    )
    store_retry_max_wait: float = Field(
        default=5.0,
        ge=0.0,
        description="Maximum backoff between attempts, in seconds"
    )

    @field_validator('currency_code')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Currency codes are upper case."""
        return v.upper()

    @model_validator(mode='after')
    def validate_backoff(self) -> 'EngineSettings':
        """Backoff window must not be inverted."""
        if self.store_retry_max_wait < self.store_retry_min_wait:
            raise ValueError("store_retry_max_wait cannot be below store_retry_min_wait")
        return self


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    debug_mode: bool = Field(
        default=False,
        description="Log at DEBUG regardless of log_level"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )

    @field_validator('log_level', mode='before')
    @classmethod
    def upper_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug_mode else self.log_level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def engine(self) -> EngineSettings:
        return EngineSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.engine
        results["engine"] = True
    except Exception as e:
        results["engine"] = False
        results["engine_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
