"""
Streaming chat endpoint.

Order of checks: authentication, then body validation, then admission
control, then opening the upstream. A request that fails validation never
consumes quota. Errors before streaming use a flat ``{"error": "..."}`` body
that the browser shows directly.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError
from starlette.background import BackgroundTask

from cardchat.api.dependencies import RateLimiter, Relay
from cardchat.api.middleware.auth import OptionalUser
from cardchat.api.middleware.rate_limiter import rate_limit_exceeded_response
from cardchat.models.error_models import SimpleErrorResponse
from cardchat.models.event_models import encode_sse
from cardchat.models.schemas.chat import ChatRequest
from cardchat.utils.logger import logger

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _bad_request(reason: str) -> JSONResponse:
    logger.warning(f"Rejected chat request: {reason}")
    return JSONResponse(status_code=400, content={"error": reason})


def _validation_reason(exc: ValidationError) -> str:
    error = exc.errors()[0]
    message = str(error["msg"]).removeprefix("Value error, ")
    location = ".".join(str(part) for part in error["loc"])
    return f"{location}: {message}" if location else message


@router.post(
    "/chat",
    summary="Stream a chat response",
    description=(
        "Send the conversation so far and receive the assistant reply as server-sent events "
        "(`text-delta`, `tool-result`, then `done` or `error`)."
    ),
    response_class=StreamingResponse,
    responses={
        200: {
            "description": "Event stream",
            "content": {
                "text/event-stream": {
                    "example": (
                        'data: {"type":"text-delta","delta":"Hello","usage":{"inputTokens":0,'
                        '"outputTokens":0,"totalTokens":0}}\n\n'
                        'data: {"type":"done","usage":{"inputTokens":12,"outputTokens":5,"totalTokens":17}}\n\n'
                    )
                }
            },
        },
        400: {"model": SimpleErrorResponse, "description": "Malformed request body"},
        401: {"model": SimpleErrorResponse, "description": "Missing or invalid access token"},
        429: {
            "description": "Rate limit exceeded",
            "content": {
                "application/json": {
                    "example": {
                        "error": "Rate limit exceeded",
                        "limit": 10,
                        "resetTime": "2025-01-15T10:31:00Z",
                        "retryAfter": 42,
                    }
                }
            },
        },
    },
)
async def chat(request: Request, user: OptionalUser, limiter: RateLimiter, relay: Relay) -> Response:
    if user is None:
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        body = await request.json()
    except ValueError:
        return _bad_request("Request body must be valid JSON")

    try:
        chat_request = ChatRequest.model_validate(body)
    except ValidationError as exc:
        return _bad_request(_validation_reason(exc))

    try:
        decision = limiter.check_and_consume(user.id)
        conversation = chat_request.upstream_turns()
    except Exception as exc:
        logger.error(f"Chat request failed before streaming: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    if not decision.admitted:
        logger.warning(f"Rate limit exceeded for {user.id}", retry_after=decision.retry_after)
        return rate_limit_exceeded_response(decision)

    logger.info(
        f"Chat stream starting: {len(conversation)} turns, {decision.remaining} requests left in window",
    )

    try:
        session = await relay.open(conversation)
    except Exception as exc:
        logger.error(f"Could not open upstream stream: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    async def event_stream() -> AsyncIterator[str]:
        async with aclosing(session.events(is_disconnected=request.is_disconnected)) as events:
            async for event in events:
                yield encode_sse(event)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, **decision.headers()},
        background=BackgroundTask(session.aclose),
    )


@router.options("/chat", include_in_schema=False)
async def chat_options() -> Response:
    """Bare OPTIONS (no CORS preflight headers) still answers 200."""
    return Response(status_code=200, headers={"Allow": "POST, OPTIONS"})
