"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates fields and provides typed access to settings.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rmraw.types import KNOWN_SCHEMA_VERSIONS


class Settings(BaseSettings):
    """Client settings loaded from environment variables.

    Optional:
        RM_SESSION_TOKEN: Session (user) token for the sync service. Required
            only when building an HTTP transport.
        RM_RAW_HOST: Base URL of the sync service
        REQUEST_TIMEOUT_SECONDS: Per-request timeout
        TRANSPORT_RETRY_ATTEMPTS: Attempts for idempotent requests
        RETRY_BACKOFF_MIN_SECONDS / RETRY_BACKOFF_MAX_SECONDS: Backoff bounds
        CACHE_CAPACITY: Entries kept by the client's LRU cache
        ABSENT_SCHEMA_VERSION: Schema version assumed when the root omits it
        LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    RM_SESSION_TOKEN: str | None = Field(
        default=None, description="Session token for the sync service"
    )
    RM_RAW_HOST: str = Field(
        default="https://eu.tectonic.remarkable.com",
        description="Base URL of the sync service",
    )

    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=30.0, gt=0.0, description="Per-request timeout in seconds"
    )
    TRANSPORT_RETRY_ATTEMPTS: int = Field(
        default=3, ge=1, le=10, description="Attempts for idempotent requests"
    )
    RETRY_BACKOFF_MIN_SECONDS: float = Field(
        default=0.5, ge=0.0, description="Minimum backoff between attempts"
    )
    RETRY_BACKOFF_MAX_SECONDS: float = Field(
        default=8.0, ge=0.0, description="Maximum backoff between attempts"
    )

    CACHE_CAPACITY: int = Field(
        default=1024, ge=1, description="Entries kept by the client's LRU cache"
    )
    ABSENT_SCHEMA_VERSION: int = Field(
        default=3,
        description="Schema version assumed when a root response omits it",
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @field_validator("RM_RAW_HOST")
    @classmethod
    def validate_raw_host(cls, v: str) -> str:
        """Require an absolute http(s) URL and drop any trailing slash."""
        if not v.startswith(("https://", "http://")):
            raise ValueError("RM_RAW_HOST must be an http(s) URL")
        return v.rstrip("/")

    @field_validator("ABSENT_SCHEMA_VERSION")
    @classmethod
    def validate_absent_schema_version(cls, v: int) -> int:
        """Only schema versions the codec understands can be assumed."""
        if v not in KNOWN_SCHEMA_VERSIONS:
            raise ValueError(
                f"ABSENT_SCHEMA_VERSION must be one of {KNOWN_SCHEMA_VERSIONS}, got {v}"
            )
        return v

    @model_validator(mode="after")
    def validate_backoff_bounds(self) -> Settings:
        """Ensure the backoff window is not inverted."""
        if self.RETRY_BACKOFF_MIN_SECONDS > self.RETRY_BACKOFF_MAX_SECONDS:
            raise ValueError(
                "RETRY_BACKOFF_MIN_SECONDS must not exceed RETRY_BACKOFF_MAX_SECONDS"
            )
        return self

    @property
    def session_token(self) -> str | None:
        """Get the session token, treating blank values as unset."""
        if self.RM_SESSION_TOKEN is None:
            return None
        return self.RM_SESSION_TOKEN.strip() or None

    def redacted_display(self) -> dict[str, str | int | float | None]:
        """Return settings with the session token redacted for display."""
        token = self.session_token
        if token is None:
            redacted = None
        elif len(token) > 12:
            redacted = f"{token[:8]}...{token[-4:]}"
        else:
            redacted = "***"

        return {
            "RM_SESSION_TOKEN": redacted,
            "RM_RAW_HOST": self.RM_RAW_HOST,
            "REQUEST_TIMEOUT_SECONDS": self.REQUEST_TIMEOUT_SECONDS,
            "TRANSPORT_RETRY_ATTEMPTS": self.TRANSPORT_RETRY_ATTEMPTS,
            "RETRY_BACKOFF_MIN_SECONDS": self.RETRY_BACKOFF_MIN_SECONDS,
            "RETRY_BACKOFF_MAX_SECONDS": self.RETRY_BACKOFF_MAX_SECONDS,
            "CACHE_CAPACITY": self.CACHE_CAPACITY,
            "ABSENT_SCHEMA_VERSION": self.ABSENT_SCHEMA_VERSION,
            "LOG_LEVEL": self.LOG_LEVEL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
