from __future__ import annotations

from gateway.api.routes.admin import router as admin_router
from gateway.api.routes.auth import router as auth_router
from gateway.api.routes.health import router as health_router
from gateway.api.routes.proxy import router as proxy_router

__all__ = ["admin_router", "auth_router", "health_router", "proxy_router"]
