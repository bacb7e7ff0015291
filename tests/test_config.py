"""Tests for environment-driven settings and startup validation."""

import pytest

from gateway.core.app_factory import validate_upstream_settings
from gateway.core.config import (
    CacheSettings,
    RateLimitSettings,
    SecuritySettings,
    Settings,
    _detect_app_env,
)
from gateway.core.errors import ValidationAppError


def test_defaults_match_route_class_budgets() -> None:
    limits = RateLimitSettings()

    assert (limits.general_window_seconds, limits.general_max_requests) == (900, 100)
    assert (limits.proxy_window_seconds, limits.proxy_max_requests) == (300, 50)
    assert (limits.auth_window_seconds, limits.auth_max_requests) == (3600, 5)


def test_cache_defaults() -> None:
    cache = CacheSettings()

    assert cache.ttl_seconds == 300
    assert cache.check_period_seconds == 60
    assert cache.store_error_responses is False


def test_env_prefix_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_AUTH_MAX_REQUESTS", "3")
    monkeypatch.setenv("SECURITY_ALLOWED_ORIGINS", "https://a.example.com, https://b.example.com ,")

    assert RateLimitSettings().auth_max_requests == 3
    assert SecuritySettings().allowed_origin_list == ["https://a.example.com", "https://b.example.com"]


def test_dev_tool_tokens_parsed() -> None:
    assert RateLimitSettings().dev_tool_tokens == ["PostmanRuntime", "insomnia", "curl", "HTTPie"]


@pytest.mark.parametrize("marker", ["RENDER", "NETLIFY", "VERCEL"])
def test_hosting_marker_forces_production(monkeypatch: pytest.MonkeyPatch, marker: str) -> None:
    monkeypatch.setenv(marker, "true")
    monkeypatch.setenv("APP_ENV", "development")

    assert _detect_app_env() == "production"
    assert Settings(app_env="development").is_production is True


def test_app_env_is_normalized() -> None:
    settings = Settings(app_env="Staging")

    assert settings.app_env == "staging"
    assert settings.is_production is False


def test_missing_upstream_settings_warn_outside_production(make_settings) -> None:
    settings = make_settings(upstream={"base_url": None})

    assert validate_upstream_settings(settings) is False


def test_missing_upstream_settings_abort_in_production(make_settings) -> None:
    settings = make_settings(app_env="production", upstream={"secret_token": None})

    with pytest.raises(ValidationAppError) as exc_info:
        validate_upstream_settings(settings)

    assert "EXTERNAL_API_SECRET_TOKEN" in exc_info.value.message


def test_invalid_base_url_only_warns(make_settings) -> None:
    settings = make_settings(app_env="production", upstream={"base_url": "not a url"})

    assert validate_upstream_settings(settings) is False


def test_complete_upstream_settings(make_settings) -> None:
    assert validate_upstream_settings(make_settings()) is True
