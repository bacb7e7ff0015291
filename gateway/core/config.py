"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load and the run mode
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
- Hosting platforms (Render, Netlify, Vercel) always run in production

All values are read once at process start; there is no hot reload.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

HOSTING_MARKERS = ("RENDER", "NETLIFY", "VERCEL")


def _detect_app_env() -> str:
    """Resolve the run mode, forcing production on known hosting platforms."""
    if any(os.getenv(marker) for marker in HOSTING_MARKERS):
        return "production"
    return os.getenv("APP_ENV", "development")


# Determine which environment to load (default: development)
APP_ENV = _detect_app_env()

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
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _comma_separated(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class UpstreamSettings(BaseSettings):
    """External API the gateway forwards to."""

    base_url: str | None = Field(
        None,
        description="Base URL of the external API (e.g., https://api.example.com/v1)",
    )
    secret_token: str | None = Field(
        None,
        description="Static credential sent upstream as 'Authorization: ApiKey <token>'",
    )
    timeout_seconds: float = Field(
        5.0,
        description="Timeout applied to every upstream call",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="EXTERNAL_API_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Fixed-window limits per route class."""

    general_window_seconds: int = Field(900, ge=1)
    general_max_requests: int = Field(100, ge=1)
    proxy_window_seconds: int = Field(300, ge=1)
    proxy_max_requests: int = Field(50, ge=1)
    auth_window_seconds: int = Field(3600, ge=1)
    auth_max_requests: int = Field(5, ge=1)
    dev_tool_user_agents: str = Field(
        "PostmanRuntime,insomnia,curl,HTTPie",
        description="Comma-separated User-Agent tokens that skip the general limiter outside production",
    )
    include_headers: bool = Field(
        True,
        description="Include Retry-After and RateLimit-* headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @property
    def dev_tool_tokens(self) -> list[str]:
        return _comma_separated(self.dev_tool_user_agents)


class BlocklistSettings(BaseSettings):
    """Violation tracking and persistent IP blocklist."""

    enabled: bool = Field(
        True,
        description="Escalate rate limit violations into the blocklist",
    )
    file_path: str = Field(
        "data/ip-blocklist.json",
        description="JSON file holding the array of blocked addresses",
    )
    threshold: int = Field(
        5,
        description="Violations within the tracking window before an address is blocked",
        ge=1,
    )
    violation_ttl_seconds: int = Field(
        24 * 60 * 60,
        description="Idle time after which a violation record is forgotten",
        ge=1,
    )
    block_duration_seconds: int = Field(
        7 * 24 * 60 * 60,
        description="Inactivity after which the cleanup sweep unblocks an address",
        ge=1,
    )
    cleanup_interval_seconds: int = Field(
        24 * 60 * 60,
        description="Interval of the blocklist cleanup sweep",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="BLOCKLIST_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """Response cache for upstream GET requests."""

    enabled: bool = True
    ttl_seconds: int = Field(300, ge=1)
    check_period_seconds: int = Field(
        60,
        description="Interval of the housekeeping sweep (cache and tracker expiry)",
        ge=1,
    )
    max_entries: int | None = Field(1024, ge=1)
    store_error_responses: bool = Field(
        False,
        description="Also cache non-2xx upstream responses (legacy behavior)",
    )
    invalidate_on_mutation: bool = Field(
        True,
        description="Clear cached entries of a resource after a successful mutation",
    )
    bypass_header: str = "X-Skip-Cache"

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class SecuritySettings(BaseSettings):
    """Origin and credential gate."""

    allowed_origins: str = Field(
        "http://localhost:3000",
        description="Comma-separated list of allowed Origin/Referer values",
    )
    origin_policy: Literal["audit", "enforce"] = Field(
        "audit",
        description="audit: log unlisted origins and allow; enforce: reject with 403",
    )
    api_key: str | None = Field(
        None,
        description="Shared secret for API-key gated routes (defaults to the upstream token)",
    )
    require_api_key_for_mutations: bool = Field(
        False,
        description="Require X-API-Key on non-GET proxy requests in production",
    )

    model_config = SettingsConfigDict(
        env_prefix="SECURITY_",
        case_sensitive=False,
    )

    @property
    def allowed_origin_list(self) -> list[str]:
        return _comma_separated(self.allowed_origins)


class GatewaySettings(BaseSettings):
    """Routing and client identification."""

    trust_forwarded_for: bool = Field(
        False,
        description="Use the first X-Forwarded-For hop as client address (only behind a trusted proxy)",
    )
    proxy_prefix: str = "/proxy/api"
    auth_prefix: str = "/api/v1/auth"
    auth_upstream_path: str = "auth"

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = "INFO"
    format: Literal["json", "plain"] = "json"
    output: Literal["stdout", "file"] = "stdout"
    file_path: str | None = None
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    request_id_header: str = "X-Request-ID"

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


def _build_upstream_settings() -> UpstreamSettings:
    """Build upstream settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat fields as required constructor
    arguments, which is not how BaseSettings is intended to be used.
    """

    return UpstreamSettings()  # type: ignore[call-arg]


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development (gate checks skipped, error details exposed)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (gate enforced, no error details)
    """

    app_env: str = APP_ENV
    upstream: UpstreamSettings = Field(default_factory=_build_upstream_settings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    blocklist: BlocklistSettings = Field(default_factory=BlocklistSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )

    @field_validator("app_env")
    @classmethod
    def _force_production_on_hosting(cls, value: str) -> str:
        if any(os.getenv(marker) for marker in HOSTING_MARKERS):
            return "production"
        return value.lower()

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @property
    def gate_api_key(self) -> str | None:
        """Shared secret for API-key gated routes."""
        return self.security.api_key or self.upstream.secret_token


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
