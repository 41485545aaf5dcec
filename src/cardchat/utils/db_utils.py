"""asyncpg pool lifecycle: creation, bounded acquisition, health and drain."""

from __future__ import annotations

import asyncio
import json

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import asyncpg

from cardchat.utils.logger import logger
from cardchat.utils.metrics import db_pool_connections

HEALTH_CHECK_ACQUIRE_TIMEOUT = 5.0
DRAIN_POLL_INTERVAL = 0.1


class ConnectionPoolExhausted(Exception):
    """The pool could not be opened, or no connection freed up in time."""


async def create_database_pool(
    dsn: str,
    *,
    min_size: int = 2,
    max_size: int = 10,
    command_timeout: float = 60.0,
    connection_timeout: float = 10.0,
) -> asyncpg.Pool:
    """Open the pool used by the chat persistence service.

    JSONB columns decode to Python objects and every connection gets a
    server-side ``statement_timeout`` matching ``command_timeout``.

    Raises:
        ConnectionPoolExhausted: The initial connections could not be established
    """
    statement_timeout_ms = int(command_timeout * 1000)

    async def setup_connection(conn: asyncpg.Connection) -> None:
        await conn.set_type_codec("jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog")
        await conn.execute(f"SET statement_timeout = '{statement_timeout_ms}'")

    pool_factory = asyncpg.create_pool(
        dsn=dsn,
        min_size=min_size,
        max_size=max_size,
        command_timeout=command_timeout,
        init=setup_connection,
    )
    try:
        pool = await asyncio.wait_for(pool_factory, timeout=connection_timeout)
    except TimeoutError as e:
        raise ConnectionPoolExhausted(f"Database pool not ready after {connection_timeout}s") from e
    except (OSError, asyncpg.PostgresError) as e:
        raise ConnectionPoolExhausted(f"Could not open database pool: {e}") from e

    if pool is None:
        raise ConnectionPoolExhausted("Could not open database pool")
    logger.info(f"Database pool ready (min={min_size}, max={max_size})")
    return pool


@asynccontextmanager
async def acquire_connection(
    pool: asyncpg.Pool,
    *,
    timeout: float | None = None,
) -> AsyncGenerator[asyncpg.Connection, None]:
    """``pool.acquire`` that reports a timeout as ConnectionPoolExhausted."""
    try:
        async with pool.acquire(timeout=timeout) as conn:
            yield conn
    except TimeoutError as e:
        raise ConnectionPoolExhausted(f"No database connection free within {timeout}s") from e


async def check_pool_health(pool: asyncpg.Pool) -> dict[str, Any]:
    """Probe the database with ``SELECT 1`` and snapshot pool usage."""
    try:
        async with acquire_connection(pool, timeout=HEALTH_CHECK_ACQUIRE_TIMEOUT) as conn:
            healthy = await conn.fetchval("SELECT 1") == 1
    except (ConnectionPoolExhausted, OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        logger.warning(f"Database health check failed: {e}")
        healthy = False

    size, idle = pool.get_size(), pool.get_idle_size()
    db_pool_connections.labels(state="free").set(idle)
    db_pool_connections.labels(state="used").set(size - idle)

    return {
        "healthy": healthy,
        "pool_size": size,
        "pool_min_size": pool.get_min_size(),
        "pool_max_size": pool.get_max_size(),
        "free_connections": idle,
        "used_connections": size - idle,
    }


async def graceful_pool_close(pool: asyncpg.Pool, timeout: float = 10.0) -> None:
    """Give checked-out connections up to ``timeout`` seconds to come back, then close."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while (busy := pool.get_size() - pool.get_idle_size()) > 0:
        if loop.time() >= deadline:
            logger.warning(f"Closing database pool with {busy} connection(s) still in use")
            break
        await asyncio.sleep(DRAIN_POLL_INTERVAL)

    await pool.close()
