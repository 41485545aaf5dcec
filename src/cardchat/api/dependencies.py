from __future__ import annotations

from typing import Annotated

import asyncpg
import httpx

from fastapi import Depends, Request

from cardchat.api.middleware.rate_limiter import FixedWindowRateLimiter, get_rate_limiter
from cardchat.api.services.auth_service import AuthService
from cardchat.api.services.conversation_service import ConversationService
from cardchat.api.services.stream_relay import StreamRelay
from cardchat.api.services.upstream import UpstreamProvider
from cardchat.core.constants import Settings, get_settings
from cardchat.tools.registry import ToolRegistry


def get_app_settings() -> Settings:
    """Provide application settings via dependency injection.

    Usage in routes:
        @router.get("/example")
        async def example(settings: AppSettings):
            return {"debug": settings.debug}
    """
    return get_settings()


async def get_db(request: Request) -> asyncpg.Pool:
    """Get database connection pool from application state."""
    return request.app.state.db_pool


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared outbound HTTP client (tools, OAuth)."""
    return request.app.state.http_client


def get_chat_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    """Chat admission control, from app state when the lifespan created one."""
    limiter = getattr(request.app.state, "rate_limiter", None)
    return limiter if limiter is not None else get_rate_limiter()


def get_tool_registry(request: Request) -> ToolRegistry:
    return request.app.state.tool_registry


def get_upstream_provider(request: Request) -> UpstreamProvider:
    return request.app.state.upstream_provider


def get_auth_service(
    settings: Annotated[Settings, Depends(get_app_settings)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> AuthService:
    return AuthService(settings=settings, http_client=http_client)


def get_token_service(settings: Annotated[Settings, Depends(get_app_settings)]) -> AuthService:
    """Auth service for token checks only (no outbound HTTP needed)."""
    return AuthService(settings=settings)


def get_conversation_service(db: Annotated[asyncpg.Pool, Depends(get_db)]) -> ConversationService:
    """Provide chat persistence backed by PostgreSQL."""
    return ConversationService(db)


def get_stream_relay(
    provider: Annotated[UpstreamProvider, Depends(get_upstream_provider)],
    registry: Annotated[ToolRegistry, Depends(get_tool_registry)],
) -> StreamRelay:
    return StreamRelay(provider, registry)


# Type aliases for cleaner route signatures
DB = Annotated[asyncpg.Pool, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Auth = Annotated[AuthService, Depends(get_auth_service)]
Conversations = Annotated[ConversationService, Depends(get_conversation_service)]
RateLimiter = Annotated[FixedWindowRateLimiter, Depends(get_chat_rate_limiter)]
Relay = Annotated[StreamRelay, Depends(get_stream_relay)]
Tools = Annotated[ToolRegistry, Depends(get_tool_registry)]
