"""ASGI entry point: ``uvicorn cardchat.api.main:app``."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cardchat.api.middleware.exception_handlers import register_exception_handlers
from cardchat.api.middleware.rate_limiter import get_rate_limiter
from cardchat.api.middleware.request_context import REQUEST_ID_HEADER, RequestContextMiddleware
from cardchat.api.routes import router as api_router
from cardchat.api.routes.health import metrics_router
from cardchat.api.services.upstream import AgentsUpstreamProvider
from cardchat.core.constants import Settings, get_settings
from cardchat.tools.registry import build_default_registry
from cardchat.utils.client_factory import create_http_client, create_openai_client
from cardchat.utils.db_utils import check_pool_health, create_database_pool, graceful_pool_close
from cardchat.utils.logger import configure_uvicorn_logging, logger

RATE_LIMIT_HEADERS = ["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"]

settings = get_settings()

if settings.debug:
    from cardchat.core.constants import _get_env_files

    logger.info(f"Env files: {[f.name for f in _get_env_files()]}")
    logger.info(
        f"app_env={settings.app_env} "
        f"db_pool={settings.db_pool_min_size}..{settings.db_pool_max_size} "
        f"chat_rate_limit={settings.chat_rate_limit_max_requests}/{settings.chat_rate_limit_window_seconds}s"
    )

# Module level so every uvicorn worker picks it up
configure_uvicorn_logging()


def _create_upstream_provider(config: Settings) -> AgentsUpstreamProvider:
    """OpenAI client for the agents runner, with its own long-read HTTP client."""
    if not config.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY is not configured")

    client = create_openai_client(
        config.openai_api_key,
        base_url=config.openai_base_url_str,
        http_client=create_http_client(
            enable_logging=config.http_request_logging,
            read_timeout=config.http_read_timeout,
        ),
    )
    logger.info(f"OpenAI client configured (model: {config.chat_model})")
    return AgentsUpstreamProvider(client, model=config.chat_model)


async def _startup(app: FastAPI, config: Settings) -> None:
    app.state.db_pool = await create_database_pool(
        dsn=config.database_url,
        min_size=config.db_pool_min_size,
        max_size=config.db_pool_max_size,
        command_timeout=config.db_command_timeout,
        connection_timeout=config.db_connection_timeout,
    )
    try:
        health = await check_pool_health(app.state.db_pool)
        if not health["healthy"]:
            logger.error("Refusing to start: database did not answer SELECT 1")
            raise RuntimeError("Database connection failed")
        logger.info(f"Database pool healthy: {health}")

        # Tool calls and OAuth exchanges share one short-timeout client
        app.state.http_client = create_http_client(
            enable_logging=config.http_request_logging,
            read_timeout=config.tool_http_timeout,
        )
        app.state.tool_registry = build_default_registry(app.state.http_client, config)
        app.state.upstream_provider = _create_upstream_provider(config)
        logger.info(f"Tools registered: {app.state.tool_registry.names}")

        app.state.rate_limiter = get_rate_limiter()
        await app.state.rate_limiter.start()
    except BaseException:
        logger.error("Startup failed, releasing what was opened")
        await _release_resources(app, config)
        raise


async def _release_resources(app: FastAPI, config: Settings) -> None:
    """Close whatever ``_startup`` got as far as creating, newest first."""
    state = app.state
    if (limiter := getattr(state, "rate_limiter", None)) is not None:
        await limiter.stop()
    if (provider := getattr(state, "upstream_provider", None)) is not None:
        await provider.aclose()
    if (http_client := getattr(state, "http_client", None)) is not None:
        await http_client.aclose()
    if (pool := getattr(state, "db_pool", None)) is not None:
        await graceful_pool_close(pool, timeout=config.shutdown_timeout)


async def _shutdown(app: FastAPI, config: Settings) -> None:
    logger.info("Shutting down")
    await _release_resources(app, config)
    logger.info("Shutdown complete")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    await _startup(app, settings)
    try:
        yield
    finally:
        await _shutdown(app, settings)


app = FastAPI(
    title="CardChat API",
    description="""
## CardChat API

Streaming chat backend. Replies arrive token by token over server-sent events,
and the model can call live data tools whose results the browser renders as cards.

### Features
- **Streaming Chat**: `text-delta`, `tool-result`, `done` and `error` events
- **Data Tools**: Current weather, next F1 race, stock quotes
- **Chat History**: Persist chats and messages per user
- **Admission Control**: Fixed-window rate limit per user on the chat endpoint

### Authentication
Sign in with GitHub or Google via `/api/auth/{provider}/login`.
All endpoints except health checks require a Bearer access token.
""",
    version=settings.app_version,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Liveness, readiness and metrics"},
        {"name": "Authentication", "description": "OAuth sign-in and current user"},
        {"name": "Chat", "description": "Streaming chat completions"},
        {"name": "Chats", "description": "Chat and message persistence"},
    ],
    openapi_url="/api/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

register_exception_handlers(app)

# Starlette runs middleware last-added first: CORS wraps the request context
app.add_middleware(RequestContextMiddleware)

origins = settings.cors_origins_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials="*" not in origins,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
    expose_headers=[*RATE_LIMIT_HEADERS, REQUEST_ID_HEADER],
)

app.include_router(api_router, prefix="/api")
app.include_router(metrics_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cardchat.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        reload_dirs=["src"],
        log_config=None,
    )
