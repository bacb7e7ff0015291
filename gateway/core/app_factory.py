from __future__ import annotations

"""Application factory for the gateway.

Centralizes app construction (settings validation, service container,
middleware, handlers, routers, lifespan) so tests can build isolated apps
with their own settings and a mocked upstream transport.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from gateway.api.routes import admin_router, auth_router, health_router, proxy_router
from gateway.core.config import Settings, settings as default_settings
from gateway.core.errors import ValidationAppError
from gateway.core.exception_handlers import setup_exception_handlers
from gateway.core.logging import configure_logging
from gateway.core.middleware import (
    rate_limit_headers_middleware,
    request_id_middleware,
    security_headers_middleware,
)
from gateway.core.openapi import apply_openapi_customizations
from gateway.services.container import build_gateway_services

logger = logging.getLogger(__name__)


def validate_upstream_settings(settings: Settings) -> bool:
    """Check that the upstream base URL and credential are usable.

    Missing values abort startup in production and only warn elsewhere, so a
    developer can run the gateway without an upstream.

    Returns:
        True when the configuration is complete and the base URL is valid.

    Raises:
        ValidationAppError: In production, when a required value is missing.
    """
    missing = [
        name
        for name, value in (
            ("EXTERNAL_API_BASE_URL", settings.upstream.base_url),
            ("EXTERNAL_API_SECRET_TOKEN", settings.upstream.secret_token),
        )
        if not value
    ]
    if missing:
        logger.error("config.missing_upstream_settings", extra={"missing": missing})
        if settings.is_production:
            raise ValidationAppError(
                code="config_missing",
                message=f"Missing required environment variables: {', '.join(missing)}",
                details={"hint": "Set them in the environment or in .env.production"},
            )
        logger.warning("config.upstream_incomplete", extra={"app_env": settings.app_env})
        return False

    try:
        url = httpx.URL(settings.upstream.base_url)
    except httpx.InvalidURL:
        url = None
    if url is None or url.scheme not in ("http", "https") or not url.host:
        logger.warning("config.invalid_base_url", extra={"base_url": settings.upstream.base_url})
        return False

    logger.info("config.validated", extra={"app_env": settings.app_env})
    return True


def create_app(
    settings: Settings | None = None,
    *,
    upstream_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Settings to build from (defaults to the process settings).
        upstream_transport: Optional httpx transport for upstream calls.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    settings = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)
    validate_upstream_settings(settings)

    gateway = build_gateway_services(settings, upstream_transport=upstream_transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await gateway.startup()
        try:
            yield
        finally:
            await gateway.shutdown()

    app = FastAPI(
        title="Edge Gateway",
        description=(
            "Edge gateway in front of an external API: per-route-class rate limits, "
            "a persistent IP blocklist for repeat offenders, a response cache for "
            "GET calls, and a header-sanitizing proxy that signs upstream calls "
            "with the service credential."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    # Middleware (the last registered runs first)
    app.middleware("http")(rate_limit_headers_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(health_router)
    app.include_router(proxy_router, prefix=settings.gateway.proxy_prefix)
    app.include_router(auth_router, prefix=settings.gateway.auth_prefix)
    app.include_router(admin_router, prefix="/admin")

    # OpenAPI customizations (security scheme, tags, exemptions)
    apply_openapi_customizations(app)

    return app
