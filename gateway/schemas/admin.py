"""Pydantic schemas for the operator endpoints."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, field_validator


class BlocklistAddRequest(BaseModel):
    """Address to block explicitly."""

    address: str = Field(..., min_length=1, max_length=255, description="Client address to block.")

    @field_validator("address")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("address must not be blank")
        return value


class BlocklistResponse(BaseModel):
    """Current blocklist contents."""

    success: bool = True
    count: int = Field(..., description="Number of blocked addresses.")
    addresses: List[str] = Field(default_factory=list, description="Blocked addresses, sorted.")


class BlocklistMutationResponse(BaseModel):
    """Outcome of an explicit add or remove."""

    success: bool = True
    address: str
    changed: bool = Field(
        ...,
        description="False when the add was a no-op because the address was already blocked.",
    )


class ViolationRecordResponse(BaseModel):
    """Live violation record of one address."""

    success: bool = True
    address: str
    count: int = Field(..., ge=0)
    last_violation_at: float = Field(..., description="UNIX time of the latest violation.")
    expires_at: float = Field(..., description="UNIX time at which the record is forgotten.")
    blocked: bool


class CacheClearRequest(BaseModel):
    """Cache invalidation request. Omit ``path`` to flush everything."""

    path: str | None = Field(
        default=None,
        description="Upstream path; entries for the path and everything beneath it are removed.",
    )


class CacheClearResponse(BaseModel):
    success: bool = True
    cleared: int


class CacheStatsResponse(BaseModel):
    """Cache counters (no stored values)."""

    success: bool = True
    enabled: bool
    ttl_seconds: int
    max_entries: int | None = None
    entries: int
    hits: int
    misses: int
    evictions: int
