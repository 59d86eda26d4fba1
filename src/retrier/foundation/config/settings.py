"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated defaults for retry drivers and library logging
from environment variables. Supports .env files and nested configuration.

Example:
    >>> from retrier.foundation.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.retry.backoff)
    'exponential'
    >>> print(settings.logging.level)
    'WARNING'

    # Or with environment variables:
    # RETRIER_RETRY_MAX_ATTEMPTS=5
    # RETRIER_RETRY_BACKOFF=constant
    # RETRIER_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Annotated, Literal

from pydantic import Field, NonNegativeFloat, NonNegativeInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from retrier.runtime.retry.backoff import Backoff


class RetrySettings(BaseSettings):
    """Default retry configuration used by ``Retry.from_settings``.

    ``max_attempts`` is deliberately not constrained to be positive: a cap of
    0 is a valid configuration that the driver reports when ``do`` is called.
    """

    model_config = SettingsConfigDict(
        env_prefix="RETRIER_RETRY_",
        extra="ignore",
    )

    max_attempts: NonNegativeInt | None = Field(default=None, description="Invocation cap (unset = unlimited)")
    backoff: Literal["none", "constant", "exponential"] = "exponential"
    wait: NonNegativeFloat = Field(default=1.0, description="Constant backoff wait in seconds")
    min_wait: NonNegativeFloat = Field(default=0.1, description="Exponential backoff first delay in seconds")
    max_wait: NonNegativeFloat = Field(default=30.0, description="Exponential backoff cap in seconds")
    max_jitter: NonNegativeFloat = Field(default=0.1, description="Upper bound of random jitter in seconds")
    factor: Annotated[float, Field(ge=1.0, description="Exponential growth factor")] = 2.0

    @field_validator("backoff", mode="before")
    @classmethod
    def _normalize_backoff(cls, v: str) -> str:
        """Normalize strategy name to lowercase."""
        return v.lower() if isinstance(v, str) else v

    def build_backoff(self) -> Backoff | None:
        """Instantiate the configured backoff strategy (None for ``"none"``)."""
        from retrier.runtime.retry.backoff import ConstantBackoff, ExponentialBackoff

        if self.backoff == "constant":
            return ConstantBackoff(self.wait, self.max_jitter)
        if self.backoff == "exponential":
            return ExponentialBackoff(self.min_wait, self.max_wait, self.max_jitter, factor=self.factor)
        return None


class LoggingSettings(BaseSettings):
    """Logging configuration for the ``retrier`` logger namespace."""

    model_config = SettingsConfigDict(
        env_prefix="RETRIER_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: Literal["json", "text"] = "text"
    include_timestamps: bool = True

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class RetrierSettings(BaseSettings):
    """Root settings for retrier.

    Loads configuration from environment variables with RETRIER_ prefix.
    Supports nested configuration and .env files.

    Example environment variables:
        RETRIER_RETRY_MAX_ATTEMPTS=5
        RETRIER_RETRY_BACKOFF=exponential
        RETRIER_RETRY_MAX_WAIT=10
        RETRIER_LOG_LEVEL=INFO
        RETRIER_LOG_FORMAT=json
    """

    model_config = SettingsConfigDict(
        env_prefix="RETRIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> RetrierSettings:
    """Get the global settings instance (cached).

    Example:
        >>> settings = get_settings()
        >>> settings.retry.max_attempts is None
        True
    """
    return RetrierSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).

    After calling this, the next get_settings() call will
    reload configuration from environment.
    """
    get_settings.cache_clear()
