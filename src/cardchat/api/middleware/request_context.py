"""
Per-request identity for log lines and error envelopes.

``RequestContextMiddleware`` opens a context for every HTTP request; code
further down (auth, routes, the stream relay) adds the caller and chat ids
to it, and ``ChatLogger`` copies it onto every record.
"""

from __future__ import annotations

import secrets
import time

from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from cardchat.utils.metrics import request_duration_seconds

REQUEST_ID_HEADER = "X-Request-ID"
REQUEST_ID_PREFIX = "req_"

_current: ContextVar[RequestContext | None] = ContextVar("cardchat_request", default=None)


@dataclass
class RequestContext:
    request_id: str
    method: str = ""
    path: str = ""
    client_ip: str | None = None
    user_id: str | None = None
    chat_id: str | None = None
    started: float = field(default_factory=time.perf_counter)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000

    def to_log_context(self) -> dict[str, Any]:
        """Fields attached to log records; unset ids are left out."""
        fields: dict[str, Any] = {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "elapsed_ms": round(self.elapsed_ms, 2),
        }
        for name in ("client_ip", "user_id", "chat_id"):
            value = getattr(self, name)
            if value:
                fields[name] = value
        return fields


def generate_request_id(prefix: str = REQUEST_ID_PREFIX) -> str:
    """``req_`` followed by 16 hex characters."""
    return prefix + secrets.token_hex(8)


def get_request_context() -> RequestContext | None:
    return _current.get()


def get_request_id() -> str | None:
    context = _current.get()
    return context.request_id if context is not None else None


def set_request_context(context: RequestContext) -> None:
    _current.set(context)


def clear_request_context() -> None:
    _current.set(None)


def update_request_context(**fields: Any) -> None:
    """Attach ids learned mid-request, e.g. ``update_request_context(chat_id=...)``.

    Unknown names land in ``extra``. Outside a request this does nothing.
    """
    context = _current.get()
    if context is None:
        return
    for name, value in fields.items():
        if name in RequestContext.__dataclass_fields__ and name != "extra":
            setattr(context, name, value)
        else:
            context.extra[name] = value


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()
    return request.client.host if request.client else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Opens the request context and stamps the response with id and timing."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        context = RequestContext(
            request_id=request.headers.get(REQUEST_ID_HEADER) or generate_request_id(),
            method=request.method,
            path=request.url.path,
            client_ip=_client_ip(request),
        )
        token = _current.set(context)
        try:
            response = await call_next(request)
        finally:
            _current.reset(token)

        elapsed_ms = context.elapsed_ms
        response.headers[REQUEST_ID_HEADER] = context.request_id
        response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"

        # Label by route template, not raw path
        route_path = getattr(request.scope.get("route"), "path", "unmatched")
        request_duration_seconds.labels(
            method=request.method, path=route_path, status=str(response.status_code)
        ).observe(elapsed_ms / 1000)
        return response
