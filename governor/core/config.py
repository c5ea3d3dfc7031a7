"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Policy tables can be overridden per environment with JSON values, e.g.::

    GOVERNOR_RATE_LIMITS='{"get_all_games": {"max": 5, "window_ms": 10000}}'
    GOVERNOR_CACHE_TTL_MS='{"all_games": 30000}'
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from governor.core.policies import (
    QuotaPolicy,
    merge_cache_ttls,
    merge_rate_limits,
)


APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    return AppSettings()  # type: ignore[call-arg]


def _build_governor_settings() -> "GovernorSettings":
    return GovernorSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    store_backend: str = Field(
        "memory",
        description="Document store backend (currently only 'memory')",
    )
    user_id_header: str = Field(
        "X-User-Id",
        description="Header carrying the signed-in user's id",
    )
    auth_required: bool = Field(
        True,
        description="Reject requests to user-scoped routes without a user id header",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class GovernorSettings(BaseSettings):
    """Request governor configuration.

    ``rate_limits`` and ``cache_ttl_ms`` hold overrides only; they are merged
    over the built-in tables from :mod:`governor.core.policies`.
    """

    enabled: bool = Field(
        True,
        description="When false, the default governor never throttles and never caches",
    )
    rate_limits: dict[str, QuotaPolicy] = Field(
        default_factory=dict,
        description="Per-action quota overrides (JSON object of {max, window_ms})",
    )
    cache_ttl_ms: dict[str, int] = Field(
        default_factory=dict,
        description="Per-category cache TTL overrides in milliseconds",
    )
    max_clients: int = Field(
        10_000,
        gt=0,
        description="Per-client governors kept in memory before the least recent is dropped",
    )

    model_config = SettingsConfigDict(
        env_prefix="GOVERNOR_",
        case_sensitive=False,
    )

    @field_validator("cache_ttl_ms")
    @classmethod
    def _ttls_not_negative(cls, value: dict[str, int]) -> dict[str, int]:
        merge_cache_ttls(value)
        return value

    def resolved_rate_limits(self) -> dict[str, QuotaPolicy]:
        """Built-in quota table with configured overrides applied."""
        return merge_rate_limits(self.rate_limits)

    def resolved_cache_ttls(self) -> dict[str, int]:
        """Built-in TTL table with configured overrides applied."""
        return merge_cache_ttls(self.cache_ttl_ms)


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    output: str = Field("stdout", description="'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file at this size (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Rotated files to keep")
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
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    governor: GovernorSettings = Field(default_factory=_build_governor_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
