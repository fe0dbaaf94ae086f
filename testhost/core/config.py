"""Configuration Management - Process-Level Settings.

Provides environment-aware settings with validation. Per-run launch
properties override the launch defaults defined here; see
``testhost.core.launch_config``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from testhost.core.constants import (
    BUILD_DEFAULT_VERSION,
    DEFAULT_APPLICATION,
    DEFAULT_CALL_ATTEMPTS,
    DEFAULT_EXECUTABLE,
    DEFAULT_LAUNCH_TIMEOUT_SECONDS,
)


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LaunchDefaults(BaseSettings):
    """Defaults used when a run does not name its host configuration."""

    model_config = SettingsConfigDict(env_prefix="TESTHOST_LAUNCH_")

    application: str = Field(
        default=DEFAULT_APPLICATION, description="Default host application kind"
    )
    executable: str = Field(
        default=DEFAULT_EXECUTABLE, description="Default host executable name"
    )
    version: str = Field(
        default=BUILD_DEFAULT_VERSION,
        description="Host version used when none is given or it is unparsable",
    )
    timeout_seconds: int = Field(
        default=DEFAULT_LAUNCH_TIMEOUT_SECONDS,
        ge=1,
        description="Seconds to wait for a launched host to accept connections",
    )


class CallConfig(BaseSettings):
    """Remote call retry settings."""

    model_config = SettingsConfigDict(env_prefix="TESTHOST_CALLS_")

    max_attempts: int = Field(
        default=DEFAULT_CALL_ATTEMPTS,
        ge=1,
        le=10,
        description="Attempts per lifecycle call before giving up",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="TESTHOST_LOGGING_")

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or console")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Accept only the two supported renderers."""
        v = v.lower()
        if v not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return v


class Settings(BaseSettings):
    """Main application settings.

    Loads from ``TESTHOST_`` environment variables and an optional .env file.

    Usage:
        from testhost.core.config import get_settings
        settings = get_settings()
    """

    model_config = SettingsConfigDict(
        env_prefix="TESTHOST_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    diagnostics: bool = Field(
        default=False,
        description="Attach full exception detail to reported failures",
    )

    launch: LaunchDefaults = Field(default_factory=LaunchDefaults)
    calls: CallConfig = Field(default_factory=CallConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings(force_reload: bool = False) -> Settings:
    """Get application settings (singleton).

    Args:
        force_reload: Force reload settings from environment

    Returns:
        Settings instance

    """
    global _settings
    if _settings is None or force_reload:
        _settings = Settings()
    return _settings
