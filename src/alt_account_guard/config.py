"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
alt-account guard service, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL (or SQLite for local runs) connection string",
    )
    pool_size: int = Field(
        default=5,
        alias="DATABASE_POOL_SIZE",
        ge=1,
        le=100,
        description="Connection pool size (ignored for SQLite)",
    )
    max_overflow: int = Field(
        default=10,
        alias="DATABASE_MAX_OVERFLOW",
        ge=0,
        le=100,
        description="Maximum overflow connections (ignored for SQLite)",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("DATABASE_URL must be a PostgreSQL or sqlite+aiosqlite connection string")
        return v


class CorrelationSettings(BaseSettings):
    """Confidence scoring for correlation strategies."""

    model_config = SettingsConfigDict(env_prefix="CORRELATION_", extra="ignore")

    network_base_confidence: int = Field(
        default=40,
        alias="CORRELATION_NETWORK_BASE_CONFIDENCE",
        ge=0,
        le=100,
        description="Base confidence for a shared network origin",
    )
    network_step_confidence: int = Field(
        default=10,
        alias="CORRELATION_NETWORK_STEP_CONFIDENCE",
        ge=0,
        le=100,
        description="Confidence added per matching provenance row of the other account",
    )
    network_max_confidence: int = Field(
        default=95,
        alias="CORRELATION_NETWORK_MAX_CONFIDENCE",
        ge=0,
        le=100,
        description="Upper bound for network-origin confidence",
    )
    device_confidence: int = Field(
        default=85,
        alias="CORRELATION_DEVICE_CONFIDENCE",
        ge=0,
        le=100,
        description="Fixed confidence for a shared device signature",
    )


class AlertSettings(BaseSettings):
    """Alert delivery behaviour."""

    model_config = SettingsConfigDict(env_prefix="ALERTS_", extra="ignore")

    notify_on_block: bool = Field(
        default=True,
        alias="ALERTS_NOTIFY_ON_BLOCK",
        description="Send a ban-enforcement notice whenever a check is blocked",
    )
    signature_preview_chars: int = Field(
        default=20,
        alias="ALERTS_SIGNATURE_PREVIEW_CHARS",
        ge=4,
        le=128,
        description="Device signature characters shown in alerts before redaction",
    )
    resend_batch_size: int = Field(
        default=50,
        alias="ALERTS_RESEND_BATCH_SIZE",
        ge=1,
        le=1000,
        description="Maximum pending alerts re-dispatched per sweep",
    )
    resend_min_age_seconds: float = Field(
        default=60.0,
        alias="ALERTS_RESEND_MIN_AGE_SECONDS",
        ge=0,
        description="Minimum age of a pending alert before the sweep retries it",
    )


class DiscordSettings(BaseSettings):
    """Discord notification settings."""

    model_config = SettingsConfigDict(env_prefix="DISCORD_", extra="ignore")

    bot_token: SecretStr | None = Field(
        default=None,
        alias="DISCORD_BOT_TOKEN",
        description="Discord bot token used to post detection alerts",
    )
    detection_channel_id: str | None = Field(
        default=None,
        alias="DISCORD_DETECTION_CHANNEL_ID",
        description="Channel receiving alt-account and ban alerts",
    )
    admin_role_id: str | None = Field(
        default=None,
        alias="DISCORD_ADMIN_ROLE_ID",
        description="Role mentioned on every alert",
    )
    api_base_url: str = Field(
        default="https://discord.com/api/v10",
        alias="DISCORD_API_BASE_URL",
        description="Discord REST API base URL",
    )

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("DISCORD_API_BASE_URL must be an HTTP(S) endpoint")
        return v.rstrip("/")

    @property
    def enabled(self) -> bool:
        """Check if Discord notifications are enabled."""
        return self.bot_token is not None and self.detection_channel_id is not None


class ApiSettings(BaseSettings):
    """Inbound HTTP API settings."""

    model_config = SettingsConfigDict(env_prefix="API_", extra="ignore")

    host: str = Field(
        default="0.0.0.0",
        alias="API_HOST",
        description="Bind address for the check API",
    )
    port: int = Field(
        default=8080,
        alias="API_PORT",
        ge=1,
        le=65535,
        description="HTTP port for the check API",
    )
    cors_origins: str = Field(
        default="*",
        alias="API_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins",
    )

    @property
    def allowed_origins(self) -> list[str]:
        """Split the configured origins into a list."""
        parts = [p.strip() for p in self.cors_origins.split(",") if p.strip()]
        return parts or ["*"]


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from alt_account_guard.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # Nested configuration groups
    #
    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    database: DatabaseSettings = Field(
        default_factory=lambda: DatabaseSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    correlation: CorrelationSettings = Field(
        default_factory=lambda: CorrelationSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    alerts: AlertSettings = Field(
        default_factory=lambda: AlertSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    discord: DiscordSettings = Field(
        default_factory=lambda: DiscordSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    api: ApiSettings = Field(
        default_factory=lambda: ApiSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Run without sending actual alerts",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "correlation": {
                "network_base_confidence": str(self.correlation.network_base_confidence),
                "network_step_confidence": str(self.correlation.network_step_confidence),
                "network_max_confidence": str(self.correlation.network_max_confidence),
                "device_confidence": str(self.correlation.device_confidence),
            },
            "alerts": {
                "notify_on_block": str(self.alerts.notify_on_block),
                "signature_preview_chars": str(self.alerts.signature_preview_chars),
            },
            "discord": {
                "bot_token": "(set)" if self.discord.bot_token else "(not set)",
                "detection_channel_id": self.discord.detection_channel_id or "(not set)",
            },
            "discord_enabled": str(self.discord.enabled),
            "api_port": str(self.api.port),
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            # URL has credentials - redact the password
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
