"""Tests for global exception handlers.

Validates that every gateway error is rendered as the envelope
``{"success": false, "message", "request_id"}`` with the proper HTTP status,
and that unexpected errors never leak internals.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from gateway.core.errors import (
    AppError,
    ClientBlockedError,
    CredentialInvalidError,
    NotFoundAppError,
    OriginRejectedError,
    RateLimitedError,
    UpstreamError,
    UpstreamUnreachableError,
    ValidationAppError,
)
from gateway.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    @pytest.mark.parametrize(
        ("error", "status_code"),
        [
            (ValidationAppError(code="bad", message="Bad input"), 400),
            (CredentialInvalidError(code="api_key_missing", message="API key is required"), 401),
            (ClientBlockedError(code="client_blocked", message="Access denied"), 403),
            (OriginRejectedError(code="origin_rejected", message="Access denied: unauthorized origin"), 403),
            (NotFoundAppError(code="missing", message="Not here"), 404),
            (UpstreamUnreachableError(code="upstream_unreachable", message="Failed"), 500),
        ],
    )
    def test_error_status_mapping(
        self,
        client: TestClient,
        app_with_handlers: FastAPI,
        error: AppError,
        status_code: int,
    ):
        @app_with_handlers.get("/test-error")
        async def test_endpoint():
            raise error

        response = client.get("/test-error")

        assert response.status_code == status_code
        data = response.json()
        assert data["success"] is False
        assert data["message"] == error.message
        assert "request_id" in data

    def test_rate_limited_error_carries_headers(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-rate-limited")
        async def test_endpoint():
            raise RateLimitedError(
                code="rate_limited",
                message="Too many requests, please try again later.",
                headers={"Retry-After": "42", "RateLimit-Limit": "100"},
            )

        response = client.get("/test-rate-limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.headers["RateLimit-Limit"] == "100"
        assert response.json()["message"] == "Too many requests, please try again later."

    def test_upstream_error_relays_status_and_body(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-upstream")
        async def test_endpoint():
            raise UpstreamError(
                code="upstream_error",
                message="Error from external API",
                status_code=404,
                data={"detail": "not found"},
            )

        response = client.get("/test-upstream")

        assert response.status_code == 404
        data = response.json()
        assert data["message"] == "Error from external API"
        assert data["data"] == {"detail": "not found"}
        # Detail hidden unless the forwarder exposed it
        assert "error" not in data

    def test_upstream_error_keeps_empty_body_under_data(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-upstream-empty")
        async def test_endpoint():
            raise UpstreamError(
                code="upstream_error",
                message="Error from external API",
                status_code=404,
                data=None,
                headers={"X-Cache": "HIT"},
            )

        response = client.get("/test-upstream-empty")

        assert response.status_code == 404
        assert response.json()["data"] is None
        assert response.headers["X-Cache"] == "HIT"

    def test_unreachable_error_includes_detail_when_set(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-unreachable")
        async def test_endpoint():
            raise UpstreamUnreachableError(
                code="upstream_unreachable",
                message="Failed to communicate with external API",
                error_detail="ConnectError: refused",
            )

        response = client.get("/test-unreachable")

        assert response.status_code == 500
        assert response.json()["error"] == "ConnectError: refused"


class TestFrameworkErrors:
    def test_request_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        class Payload(BaseModel):
            address: str

        @app_with_handlers.post("/test-body")
        async def test_endpoint(payload: Payload):
            return payload

        response = client.post("/test-body", json={})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["errors"]

    def test_unknown_route_uses_envelope(self, client: TestClient):
        response = client.get("/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Not Found", "request_id": None}


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-crash")
        async def test_endpoint():
            raise RuntimeError("database connection failed")

        response = client.get("/test-crash")

        assert response.status_code == 500
        assert "database connection" not in response.text

    def test_general_exception_handler_never_leaks_stack_trace(self):
        """Verify stack traces are never included in response."""
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = ValueError("Test error with details")
        response = asyncio.run(general_exception_handler(request, exc))

        response_text = bytes(response.body).decode()
        data = json.loads(response_text)
        assert response.status_code == 500
        assert data["success"] is False
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text
        assert "Test error with details" not in response_text


def test_setup_exception_handlers_registers_handlers(app_with_handlers: FastAPI):
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
