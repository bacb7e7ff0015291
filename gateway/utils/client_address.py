"""Client address resolution."""

from __future__ import annotations

from fastapi import Request

LOOPBACK_ADDRESSES = frozenset({"127.0.0.1", "::1", "localhost", "::ffff:127.0.0.1"})

UNKNOWN_ADDRESS = "unknown"


def get_client_address(request: Request, *, trust_forwarded_for: bool = False) -> str:
    """Return the address used as the key for rate limiting and blocking.

    Only enable ``trust_forwarded_for`` behind a reverse proxy that overwrites
    X-Forwarded-For; otherwise clients can pick their own address.
    """
    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_ADDRESS


def is_loopback(address: str) -> bool:
    return address in LOOPBACK_ADDRESSES
