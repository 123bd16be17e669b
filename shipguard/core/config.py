"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
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

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


FIFTEEN_MINUTES_MS = 15 * 60 * 1000
ONE_MINUTE_MS = 60 * 1000


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and propagate the request id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Per-profile rate limit policy.

    Each profile gets one long-lived limiter per application.
    """

    enabled: bool = Field(True, description="Enable rate limiting on decorated routes")
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    sweep_every: int = Field(
        1,
        description="Sweep expired records every N checks (0 disables automatic sweeps)",
        ge=0,
    )

    api_max_requests: int = Field(100, ge=1)
    api_window_ms: int = Field(FIFTEEN_MINUTES_MS, ge=1)
    api_message: str = Field("API rate limit exceeded. Please try again later.")

    auth_max_requests: int = Field(5, ge=1)
    auth_window_ms: int = Field(FIFTEEN_MINUTES_MS, ge=1)
    auth_message: str = Field(
        "Too many login attempts. Please try again in 15 minutes."
    )

    strict_max_requests: int = Field(10, ge=1)
    strict_window_ms: int = Field(ONE_MINUTE_MS, ge=1)
    strict_message: str = Field("Rate limit exceeded. Please slow down.")

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """In-memory cache configuration."""

    prefix: str = Field("sevkiyat", description="Namespace prepended to every cache key")
    default_ttl_seconds: int = Field(3600, description="TTL used when set() gets none")
    cleanup_interval_seconds: int = Field(
        300,
        description="Background sweep interval in seconds (0 = manual cleanup only)",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Nested settings are created via default_factory so env loading works.
    """

    app_env: str = APP_ENV
    debug: bool = False
    log: LogSettings = Field(default_factory=LogSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


settings = Settings()
