from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from gateway.core.auth import verify_api_key
from gateway.core.dependencies import get_gateway, reject_blocked_clients
from gateway.core.errors import NotFoundAppError
from gateway.core.origin import validate_origin
from gateway.core.rate_limit import enforce_general_rate_limit
from gateway.schemas.admin import (
    BlocklistAddRequest,
    BlocklistMutationResponse,
    BlocklistResponse,
    CacheClearRequest,
    CacheClearResponse,
    CacheStatsResponse,
    ViolationRecordResponse,
)
from gateway.schemas.envelope import GATEWAY_ERROR_RESPONSES, ErrorEnvelope

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Admin"],
    dependencies=[
        Depends(validate_origin),
        Depends(verify_api_key),
        Depends(reject_blocked_clients),
        Depends(enforce_general_rate_limit),
    ],
    responses={
        **GATEWAY_ERROR_RESPONSES,
        401: {"model": ErrorEnvelope, "description": "Missing or invalid API key."},
    },
)


@router.get("/blocklist", response_model=BlocklistResponse)
def list_blocked(request: Request) -> BlocklistResponse:
    """List every blocked client address."""
    addresses = get_gateway(request).blocklist.blocked_addresses()
    return BlocklistResponse(count=len(addresses), addresses=addresses)


@router.post("/blocklist", response_model=BlocklistMutationResponse)
def block_address(payload: BlocklistAddRequest, request: Request) -> BlocklistMutationResponse:
    """Block an address explicitly. Adding an address twice is a no-op."""
    changed = get_gateway(request).blocklist.add(payload.address)
    logger.info("admin.blocklist_add", extra={"client_address": payload.address, "changed": changed})
    return BlocklistMutationResponse(address=payload.address, changed=changed)


@router.delete(
    "/blocklist/{address}",
    response_model=BlocklistMutationResponse,
    responses={404: {"model": ErrorEnvelope}},
)
def unblock_address(address: str, request: Request) -> BlocklistMutationResponse:
    """Remove an address from the blocklist.

    Raises:
        NotFoundAppError: 404 if the address is not blocked.
    """
    gateway = get_gateway(request)
    if not gateway.blocklist.remove(address):
        raise NotFoundAppError(
            code="address_not_blocked",
            message=f"Address {address} is not blocked",
            details={"address": address},
        )
    # Forget old violations so the next breach starts a new count
    tracker = gateway.tracker
    if tracker is not None:
        tracker.reset(address)
    return BlocklistMutationResponse(address=address, changed=True)


@router.get(
    "/violations/{address}",
    response_model=ViolationRecordResponse,
    responses={404: {"model": ErrorEnvelope}},
)
def get_violations(address: str, request: Request) -> ViolationRecordResponse:
    """Return the live violation record of an address.

    Raises:
        NotFoundAppError: 404 if no live record exists (or tracking is disabled).
    """
    gateway = get_gateway(request)
    tracker = gateway.tracker
    record = tracker.get_record(address) if tracker is not None else None
    if record is None:
        raise NotFoundAppError(
            code="violations_not_found",
            message=f"No violations recorded for {address}",
            details={"address": address},
        )
    return ViolationRecordResponse(
        address=record.address,
        count=record.count,
        last_violation_at=record.last_violation_at,
        expires_at=record.expires_at,
        blocked=gateway.blocklist.is_blocked(address),
    )


@router.post("/cache/clear", response_model=CacheClearResponse)
def clear_cache(request: Request, payload: CacheClearRequest | None = None) -> CacheClearResponse:
    """Invalidate cached upstream responses for a path, or all of them."""
    path = payload.path if payload is not None else None
    cleared = get_gateway(request).cache.clear(path or None)
    return CacheClearResponse(cleared=cleared)


@router.get("/cache/stats", response_model=CacheStatsResponse)
def cache_stats(request: Request) -> CacheStatsResponse:
    gateway = get_gateway(request)
    return CacheStatsResponse(enabled=gateway.settings.cache.enabled, **gateway.cache.stats())
