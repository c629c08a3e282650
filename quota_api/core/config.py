"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_redis_settings() -> "RedisSettings":
    return RedisSettings()  # type: ignore[call-arg]


def _build_quota_settings() -> "QuotaSettings":
    return QuotaSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of API keys allowed to consume quotas",
    )
    admin_api_keys: str | None = Field(
        None,
        description="Comma-separated list of API keys allowed to manage rules and read overages",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Connection pool configuration for the shared quota store.

    When ``url`` is set it takes precedence over host/port/db/password.
    """

    url: str | None = Field(
        None,
        description="Redis URL (e.g., redis://:secret@localhost:6379/0)",
    )
    host: str = Field("localhost", description="Redis host")
    port: int = Field(6379, description="Redis port", ge=1, le=65535)
    db: int = Field(0, description="Redis logical database index", ge=0)
    password: str | None = Field(None, description="Redis password")
    max_connections: int = Field(
        16,
        description="Upper bound of pooled connections per process",
        ge=1,
    )
    pool_timeout_seconds: float | None = Field(
        5.0,
        description="Seconds to wait for a free pooled connection (None waits forever)",
    )
    socket_timeout_seconds: float = Field(
        2.0,
        description="Socket read/write timeout for store commands",
        gt=0,
    )
    socket_connect_timeout_seconds: float = Field(
        2.0,
        description="Socket connect timeout",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class QuotaSettings(BaseSettings):
    """Quota enforcement behaviour."""

    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Quota store backend; 'memory' is single-process only",
    )
    key_separator: str = Field(
        "/",
        description="Separator used to join key segments into a composite quota key",
        min_length=1,
    )
    enforce_enabled: bool = Field(
        True,
        description="Enforce quotas on protected HTTP routes",
    )
    namespace: str = Field(
        "api",
        description="First key segment used when enforcing quotas on HTTP routes",
        min_length=1,
    )
    fail_open: bool = Field(
        False,
        description="Allow HTTP requests through when the quota store fails",
    )

    model_config = SettingsConfigDict(
        env_prefix="QUOTA_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log line format",
    )
    output: Literal["stdout", "file"] = Field(
        "stdout",
        description="Log destination",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    quota: QuotaSettings = Field(default_factory=_build_quota_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
