"""
Exception types and handlers for the REST surface.

Services raise ``AppException`` subclasses carrying an ``ErrorCode``. The
handlers registered here render those, plus framework, OpenAI and asyncpg
errors, as the ``{"error": {...}}`` envelope. 4xx are logged as warnings
and 5xx as errors with traceback.

The streaming chat endpoint does not go through these: it answers with
flat ``{"error": "..."}`` bodies of its own.
"""

from __future__ import annotations

import traceback

from collections.abc import Awaitable, Callable
from typing import Any

import asyncpg

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from openai import (
    APIError as OpenAIAPIError,
    AuthenticationError as OpenAIAuthError,
    RateLimitError as OpenAIRateLimitError,
)
from pydantic import ValidationError

from cardchat.api.middleware.request_context import get_request_context, get_request_id
from cardchat.core.constants import get_settings
from cardchat.models.error_models import ErrorCode, ErrorDetail, ErrorResponse, get_status_code
from cardchat.utils.logger import logger


class AppException(Exception):
    """An error with a stable code; the HTTP status follows from the code."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.cause = cause


class AuthenticationError(AppException):
    def __init__(
        self,
        message: str = "Authentication required",
        code: ErrorCode = ErrorCode.AUTH_REQUIRED,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(code, message, details)


class ResourceNotFoundError(AppException):
    def __init__(self, resource: str, resource_id: str | None = None, code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND):
        label = f"{resource} '{resource_id}'" if resource_id else resource
        super().__init__(code, f"{label} not found", {"resource": resource, "id": resource_id})


class ChatNotFoundError(ResourceNotFoundError):
    def __init__(self, chat_id: str):
        super().__init__("Chat", chat_id, code=ErrorCode.CHAT_NOT_FOUND)


class ChatAccessDeniedError(AppException):
    """The chat exists but another user owns it."""

    def __init__(self, chat_id: str):
        super().__init__(ErrorCode.CHAT_ACCESS_DENIED, "Unauthorized access to chat", {"chat_id": chat_id})


class ValidationException(AppException):
    """Semantic validation failure detected after the request parsed."""

    def __init__(self, message: str = "Validation error", errors: list[ErrorDetail] | None = None):
        self.errors = errors or []
        details = {"errors": [error.model_dump() for error in self.errors]} if self.errors else None
        super().__init__(ErrorCode.VALIDATION_ERROR, message, details)


class ExternalServiceError(AppException):
    """An OAuth provider, OpenAI or data API failed."""

    def __init__(
        self,
        service: str,
        message: str,
        code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
        cause: Exception | None = None,
    ):
        super().__init__(code, f"{service}: {message}", {"service": service}, cause)


class DatabaseError(AppException):
    def __init__(
        self,
        message: str = "Database error",
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        cause: Exception | None = None,
    ):
        super().__init__(code, message, cause=cause)


# ============================================================================
# Rendering
# ============================================================================


def _validation_details(errors: list[Any]) -> list[ErrorDetail]:
    return [
        ErrorDetail(field=".".join(map(str, error["loc"])), message=error["msg"], code=error["type"])
        for error in errors
    ]


def _app_exception_details(exc: AppException) -> list[ErrorDetail] | None:
    if not exc.details:
        return None
    if "errors" in exc.details:
        return [ErrorDetail(**error) for error in exc.details["errors"]]
    return [ErrorDetail(field=key, message=str(value)) for key, value in exc.details.items() if value is not None] or None


def _log(exc: Exception, code: ErrorCode, status_code: int) -> None:
    context = get_request_context()
    fields = context.to_log_context() if context else {}
    fields.update(error_code=code.value, status_code=status_code)

    if status_code >= 500:
        logger.error(f"Server error {code.value}: {exc}", exc_info=True, **fields)
    else:
        logger.warning(f"Client error {code.value}: {exc}", **fields)


def _render(
    request: Request,
    exc: Exception,
    *,
    code: ErrorCode,
    status_code: int,
    message: str,
    details: list[ErrorDetail] | None = None,
    debug_info: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    include_debug = get_settings().debug
    body = ErrorResponse(
        code=code,
        message=message,
        request_id=get_request_id(),
        path=request.url.path,
        details=details,
        debug=debug_info if include_debug else None,
    )
    _log(exc, code, status_code)
    return JSONResponse(status_code=status_code, content=body.to_dict(include_debug=include_debug), headers=headers)


# ============================================================================
# Handlers
# ============================================================================

_HTTP_STATUS_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.AUTH_REQUIRED,
    403: ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    405: ErrorCode.VALIDATION_ERROR,
    422: ErrorCode.VALIDATION_ERROR,
    429: ErrorCode.RATE_LIMITED,
    502: ErrorCode.EXTERNAL_SERVICE_ERROR,
    503: ErrorCode.EXTERNAL_TIMEOUT,
}


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return _render(
        request,
        exc,
        code=exc.code,
        status_code=get_status_code(exc.code),
        message=exc.message,
        details=_app_exception_details(exc),
        debug_info={"exception_type": type(exc).__name__, "cause": str(exc.cause) if exc.cause else None},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _render(
        request,
        exc,
        code=_HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR),
        status_code=exc.status_code,
        message=exc.detail if isinstance(exc.detail, str) else str(exc.detail),
        headers=exc.headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError | ValidationError
) -> JSONResponse:
    """Request parsing failures and models that failed to build inside a handler."""
    message = "Request validation failed" if isinstance(exc, RequestValidationError) else "Data validation failed"
    return _render(
        request,
        exc,
        code=ErrorCode.VALIDATION_ERROR,
        status_code=422,
        message=message,
        details=_validation_details(list(exc.errors())),
    )


async def openai_exception_handler(request: Request, exc: OpenAIAPIError) -> JSONResponse:
    """OpenAI failures that surface before any stream is opened."""
    if isinstance(exc, OpenAIRateLimitError):
        code, status_code, message = ErrorCode.EXTERNAL_RATE_LIMITED, 429, "OpenAI rate limit exceeded"
    elif isinstance(exc, OpenAIAuthError):
        code, status_code, message = ErrorCode.OPENAI_ERROR, 502, "OpenAI authentication failed"
    else:
        code, status_code, message = ErrorCode.OPENAI_ERROR, 502, f"OpenAI API error: {exc}"

    return _render(
        request,
        exc,
        code=code,
        status_code=status_code,
        message=message,
        debug_info={"openai_error_type": type(exc).__name__, "openai_error_code": getattr(exc, "code", None)},
    )


async def asyncpg_exception_handler(request: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    """SQL and server messages stay in the logs."""
    return _render(
        request,
        exc,
        code=ErrorCode.DATABASE_ERROR,
        status_code=500,
        message="Database operation failed",
        debug_info={"sqlstate": getattr(exc, "sqlstate", None), "pg_error_class": type(exc).__name__},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return _render(
        request,
        exc,
        code=ErrorCode.INTERNAL_UNEXPECTED,
        status_code=500,
        message="An unexpected error occurred",
        debug_info={
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "traceback": traceback.format_exc(),
        },
    )


_HANDLERS: tuple[tuple[type[Exception], Callable[[Request, Any], Awaitable[JSONResponse]]], ...] = (
    (AppException, app_exception_handler),
    (HTTPException, http_exception_handler),
    (RequestValidationError, validation_exception_handler),
    (ValidationError, validation_exception_handler),
    (OpenAIAPIError, openai_exception_handler),
    (asyncpg.PostgresError, asyncpg_exception_handler),
    (Exception, generic_exception_handler),
)


def register_exception_handlers(app: FastAPI) -> None:
    for exc_class, handler in _HANDLERS:
        app.add_exception_handler(exc_class, handler)
