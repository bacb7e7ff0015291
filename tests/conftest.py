"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the environment before anything imports ``gateway.core.config`` so
no .env file is read and no hosting marker forces production mode.
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Callable

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ["APP_ENV"] = "testing"
for _marker in ("RENDER", "NETLIFY", "VERCEL"):
    os.environ.pop(_marker, None)

os.environ.setdefault("EXTERNAL_API_BASE_URL", "https://upstream.test/api")
os.environ.setdefault("EXTERNAL_API_SECRET_TOKEN", "upstream-secret-token")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault(
    "BLOCKLIST_FILE_PATH",
    str(Path(tempfile.gettempdir()) / f"gateway-test-blocklist-{os.getpid()}.json"),
)

import httpx
import pytest
from fastapi.testclient import TestClient

from gateway.core.app_factory import create_app
from gateway.core.config import (
    BlocklistSettings,
    CacheSettings,
    GatewaySettings,
    LogSettings,
    RateLimitSettings,
    SecuritySettings,
    Settings,
    UpstreamSettings,
)

UPSTREAM_BASE_URL = "https://upstream.test/api"
UPSTREAM_TOKEN = "upstream-secret-token"


class FakeUpstream:
    """Callable handler for ``httpx.MockTransport`` recording every upstream call."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.payload: Any = {"ok": True}
        self.fail_with: type[httpx.TransportError] | None = None

    def respond(self, status_code: int, payload: Any) -> None:
        self.status_code = status_code
        self.payload = payload

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with("upstream down", request=request)
        if isinstance(self.payload, (str, bytes)):
            return httpx.Response(
                self.status_code,
                content=self.payload,
                headers={"content-type": "text/plain"},
            )
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def blocklist_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "ip-blocklist.json"


@pytest.fixture
def make_settings(blocklist_path: Path) -> Callable[..., Settings]:
    """Factory building isolated settings; keyword groups override defaults."""

    def _make(
        *,
        app_env: str = "testing",
        upstream: dict[str, Any] | None = None,
        rate_limit: dict[str, Any] | None = None,
        blocklist: dict[str, Any] | None = None,
        cache: dict[str, Any] | None = None,
        security: dict[str, Any] | None = None,
        gateway: dict[str, Any] | None = None,
    ) -> Settings:
        return Settings(
            app_env=app_env,
            upstream=UpstreamSettings(
                **{"base_url": UPSTREAM_BASE_URL, "secret_token": UPSTREAM_TOKEN, **(upstream or {})}
            ),
            rate_limit=RateLimitSettings(**(rate_limit or {})),
            blocklist=BlocklistSettings(**{"file_path": str(blocklist_path), **(blocklist or {})}),
            cache=CacheSettings(**(cache or {})),
            security=SecuritySettings(**(security or {})),
            gateway=GatewaySettings(**(gateway or {})),
            log=LogSettings(level="WARNING"),
        )

    return _make


@pytest.fixture
def make_client(
    make_settings: Callable[..., Settings],
    fake_upstream: FakeUpstream,
) -> Callable[..., TestClient]:
    """Factory building a TestClient for an app wired to ``fake_upstream``."""

    def _make(**overrides: Any) -> TestClient:
        app = create_app(
            make_settings(**overrides),
            upstream_transport=httpx.MockTransport(fake_upstream),
        )
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> TestClient:
    """Test client with default (non-production) settings."""
    return make_client()
