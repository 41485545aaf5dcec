"""
Health check API schemas.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DatabaseHealth(BaseModel):
    """Database connection pool health."""

    healthy: bool = Field(..., description="Database is accessible")
    pool_size: int = Field(default=0, ge=0, description="Total pool size")
    pool_free: int = Field(default=0, ge=0, description="Available connections")
    pool_used: int = Field(default=0, ge=0, description="Active connections")
    error: str | None = Field(default=None, description="Error if unhealthy")


class RateLimiterHealth(BaseModel):
    """Admission control state."""

    active_windows: int = Field(default=0, ge=0, description="Identities holding a rate window")
    max_requests: int = Field(..., gt=0, description="Requests admitted per window")
    window_seconds: float = Field(..., gt=0, description="Window length in seconds")


class ToolCacheHealth(BaseModel):
    """In-process result cache of one tool."""

    size: int = Field(default=0, ge=0, description="Cached entries")
    max_size: int = Field(..., gt=0, description="Entries held before LRU eviction")
    hits: int = Field(default=0, ge=0)
    misses: int = Field(default=0, ge=0)
    hit_rate: str = Field(default="0.0%", description="Hits over lookups since startup")


class HealthResponse(BaseModel):
    """Service health check response."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "version": "1.0.0",
                "database": {"healthy": True, "pool_size": 10, "pool_free": 8, "pool_used": 2},
                "rate_limiter": {"active_windows": 3, "max_requests": 10, "window_seconds": 60.0},
                "tool_caches": {
                    "getWeather": {"size": 4, "max_size": 256, "hits": 12, "misses": 4, "hit_rate": "75.0%"}
                },
            }
        }
    )

    status: Literal["healthy", "degraded"] = Field(..., description="Overall service health")
    version: str = Field(..., description="Application version")
    database: DatabaseHealth = Field(..., description="Database health")
    rate_limiter: RateLimiterHealth = Field(..., description="Admission control state")
    tool_caches: dict[str, ToolCacheHealth] = Field(default_factory=dict, description="Tool result caches by tool name")
