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

# Map environments to their respective .env files (relative to PROJECT_ROOT)
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


DEFAULT_STATIC_ASSETS: list[str] = [
    "/",
    "/index.html",
    "/manifest.json",
    "/assets/tailwind.css",
    "/images/sebastian-volkel-7QT_puk5CJQ-unsplash.jpg.webp",
    "https://unpkg.com/react@18/umd/react.production.min.js",
    "https://unpkg.com/react-dom@18/umd/react-dom.production.min.js",
    "https://unpkg.com/htm@3.1.1/dist/htm.umd.js",
    "https://unpkg.com/gsap@3.12.2/dist/gsap.min.js",
    "https://unpkg.com/dompurify@3.0.6/dist/purify.min.js",
]


def _build_log_settings() -> "LogSettings":
    """Build log settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return LogSettings()  # type: ignore[call-arg]


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    See _build_log_settings() for rationale about the type ignore.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_upstream_settings() -> "UpstreamSettings":
    return UpstreamSettings()  # type: ignore[call-arg]


def _build_cache_settings() -> "CacheSettings":
    return CacheSettings()  # type: ignore[call-arg]


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(
        "INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
    )
    format: str = Field(
        "json",
        description="Log format: json or plain",
    )
    output: str = Field(
        "stdout",
        description="Log destination: stdout or file",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client rate limiting on the API routes",
    )
    rate_limit_window_seconds: int = Field(
        3600,
        description="Sliding window length in seconds",
        ge=1,
    )
    rate_limit_sweep_interval_seconds: int = Field(
        300,
        description="Minimum seconds between full registry sweeps",
        ge=1,
    )
    rate_limit_analysis: int = Field(
        30,
        description="Requests per window for expensive AI analysis endpoints",
        ge=0,
    )
    rate_limit_subscription: int = Field(
        20,
        description="Requests per window for write endpoints",
        ge=0,
    )
    rate_limit_read: int = Field(
        100,
        description="Requests per window for read endpoints",
        ge=0,
    )
    rate_limit_webhook: int = Field(
        50,
        description="Requests per window for webhook receivers",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class UpstreamSettings(BaseSettings):
    """External collaborators reached by the API routes."""

    base_url: str = Field(
        "http://localhost:9000",
        description="Base URL the /api routes forward to",
    )
    api_key: str | None = Field(
        None,
        description="Bearer token sent to the upstream, if any",
    )
    timeout_seconds: float = Field(
        15.0,
        description="Upstream request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="UPSTREAM_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """Offline cache manager configuration.

    Changing ``version`` is the only way to trigger a generation cutover.
    """

    version: str = Field(
        "v2",
        description="Cache generation tag",
    )
    name_prefix: str = Field(
        "leaf-tracker-",
        description="Prefix shared by every cache store this system owns",
    )
    scope: str = Field(
        "http://localhost:8000",
        description="Origin that relative manifest URLs resolve against",
    )
    api_prefix: str = Field(
        "/api/",
        description="Path prefix routed to the network-first strategy",
    )
    offline_document: str = Field(
        "/index.html",
        description="Cached document served to failed navigations",
    )
    static_assets: list[str] = Field(
        default_factory=lambda: list(DEFAULT_STATIC_ASSETS),
        description="Manifest pre-cached at install time (JSON list in env)",
    )
    skip_waiting_on_install: bool = Field(
        True,
        description="Activate a freshly installed generation without waiting for old clients",
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=_build_log_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    upstream: UpstreamSettings = Field(default_factory=_build_upstream_settings)
    cache: CacheSettings = Field(default_factory=_build_cache_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
