"""
Health and metrics endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from cardchat.api.dependencies import DB, AppSettings, RateLimiter, Tools
from cardchat.models.schemas.health import DatabaseHealth, HealthResponse, RateLimiterHealth, ToolCacheHealth
from cardchat.utils.db_utils import check_pool_health

router = APIRouter()
metrics_router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Database pool, admission control and tool cache status.",
    responses={
        200: {
            "description": "System health status",
            "content": {
                "application/json": {
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
            },
        }
    },
)
async def health_check(db: DB, limiter: RateLimiter, tools: Tools, settings: AppSettings) -> HealthResponse:
    db_health_data = await check_pool_health(db)
    db_healthy = db_health_data.get("healthy", False)

    return HealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=settings.app_version,
        database=DatabaseHealth(
            healthy=db_healthy,
            pool_size=db_health_data.get("pool_size", 0),
            pool_free=db_health_data.get("free_connections", 0),
            pool_used=db_health_data.get("used_connections", 0),
            error=None if db_healthy else "Database unavailable",
        ),
        rate_limiter=RateLimiterHealth(
            active_windows=len(limiter),
            max_requests=limiter.config.max_requests,
            window_seconds=limiter.config.window_seconds,
        ),
        tool_caches={name: ToolCacheHealth(**stats) for name, stats in tools.cache_stats().items()},
    )


@metrics_router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Prometheus exposition."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
