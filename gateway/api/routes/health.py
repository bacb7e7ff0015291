"""Liveness route, mounted without the origin gate, blocklist or limiters."""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health", summary="Gateway liveness")
def health_check() -> dict[str, str]:
    """Report that the gateway process is serving requests."""
    return {"status": "ok"}
