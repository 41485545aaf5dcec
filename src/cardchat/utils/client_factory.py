"""
HTTP and OpenAI client factory utilities.
Centralizes httpx/AsyncOpenAI client creation with consistent timeouts.
"""

from __future__ import annotations

from typing import Any

import httpx

from openai import AsyncOpenAI

from cardchat.utils.logger import logger

# Streaming responses can pause between tokens while the model runs tools,
# so the model client gets a generous read timeout
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_READ_TIMEOUT = 600.0
DEFAULT_WRITE_TIMEOUT = 30.0
DEFAULT_POOL_TIMEOUT = 30.0

#: Query parameters holding provider credentials (never logged)
SENSITIVE_PARAMS = frozenset({"appid", "apikey", "api_key", "client_secret", "code"})
SENSITIVE_HEADERS = frozenset({"authorization", "api-key", "x-api-key"})


def _redacted_url(url: httpx.URL) -> str:
    params = [(k, "***" if k.lower() in SENSITIVE_PARAMS else v) for k, v in url.params.multi_items()]
    return str(url.copy_with(params=params)) if params else str(url)


async def _log_request(request: httpx.Request) -> None:
    headers = {k: ("***" if k.lower() in SENSITIVE_HEADERS else v) for k, v in request.headers.items()}
    logger.debug(f"HTTP Request: {request.method} {_redacted_url(request.url)}", headers=headers)


async def _log_response(response: httpx.Response) -> None:
    request = response.request
    logger.debug(
        f"HTTP Response: {response.status_code} {request.method} {_redacted_url(request.url)}",
        status_code=response.status_code,
    )


def create_http_client(
    enable_logging: bool = False,
    read_timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an HTTP client with explicit timeouts.

    Args:
        enable_logging: Log each request/response (credentials redacted)
        read_timeout: Read timeout in seconds (default: 600s for streaming)
        transport: Optional transport override (``httpx.MockTransport`` in tests)
    """
    timeout = httpx.Timeout(
        connect=DEFAULT_CONNECT_TIMEOUT,
        read=read_timeout if read_timeout is not None else DEFAULT_READ_TIMEOUT,
        write=DEFAULT_WRITE_TIMEOUT,
        pool=DEFAULT_POOL_TIMEOUT,
    )

    kwargs: dict[str, Any] = {"timeout": timeout}
    if transport is not None:
        kwargs["transport"] = transport
    if enable_logging:
        kwargs["event_hooks"] = {"request": [_log_request], "response": [_log_response]}
    return httpx.AsyncClient(**kwargs)


def create_openai_client(
    api_key: str,
    base_url: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncOpenAI:
    """Create AsyncOpenAI client with consistent configuration.

    Args:
        api_key: OpenAI API key
        base_url: Optional base URL for OpenAI-compatible endpoints
        http_client: Optional httpx client (shared timeouts, request logging)
    """
    kwargs: dict[str, Any] = {"api_key": api_key, "http_client": http_client}
    if base_url:
        kwargs["base_url"] = base_url
    return AsyncOpenAI(**kwargs)
