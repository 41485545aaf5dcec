"""
Standardized error response models for the cardchat API.

Every non-streaming error leaves the service in the same envelope so the
browser can branch on ``error.code`` instead of parsing messages.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Application-specific error codes for categorization."""

    # Authentication errors (1xxx)
    AUTH_REQUIRED = "AUTH_1001"
    AUTH_INVALID_TOKEN = "AUTH_1002"
    AUTH_EXPIRED_TOKEN = "AUTH_1003"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_1004"
    AUTH_PROVIDER_NOT_CONFIGURED = "AUTH_1005"
    AUTH_INVALID_STATE = "AUTH_1006"

    # Validation errors (2xxx)
    VALIDATION_ERROR = "VAL_2001"

    # Resource errors (3xxx)
    RESOURCE_NOT_FOUND = "RES_3001"
    CHAT_NOT_FOUND = "RES_3010"
    CHAT_ACCESS_DENIED = "RES_3011"

    # Admission control (4xxx)
    RATE_LIMITED = "RATE_4001"

    # External service errors (7xxx)
    EXTERNAL_SERVICE_ERROR = "EXT_7001"
    EXTERNAL_TIMEOUT = "EXT_7002"
    EXTERNAL_RATE_LIMITED = "EXT_7003"
    OPENAI_ERROR = "EXT_7010"
    OAUTH_PROVIDER_ERROR = "EXT_7020"

    # Database errors (8xxx)
    DATABASE_ERROR = "DB_8001"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "INT_9001"
    INTERNAL_UNEXPECTED = "INT_9999"


class ErrorDetail(BaseModel):
    """Detailed information about a specific validation or sub-error."""

    field: str | None = None
    message: str
    code: str | None = None
    value: Any | None = Field(default=None, exclude=True)  # never echoed back


class ErrorResponse(BaseModel):
    """Standardized error body for REST endpoints.

    Example response:
    {
        "error": {
            "code": "RES_3010",
            "message": "Chat '6f1c...' not found",
            "request_id": "req_abc123",
            "timestamp": "2025-01-15T10:30:00Z",
            "path": "/api/chats/6f1c..."
        }
    }
    """

    code: ErrorCode
    message: str
    request_id: str | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    details: list[ErrorDetail] | None = None
    path: str | None = None
    # Debug info - only included when DEBUG=true
    debug: dict[str, Any] | None = Field(default=None, exclude=True)

    def to_dict(self, include_debug: bool = False) -> dict[str, Any]:
        """Convert to the ``{"error": {...}}`` JSON body."""
        data = self.model_dump(mode="json", exclude_none=True)
        if include_debug and self.debug:
            data["debug"] = self.debug
        return {"error": data}


class ErrorResponseWrapper(BaseModel):
    """OpenAPI shape of the error envelope."""

    error: ErrorResponse


class SimpleErrorResponse(BaseModel):
    """Flat ``{"error": "..."}`` body used by the streaming chat endpoint."""

    error: str


_STATUS_GROUPS: dict[int, tuple[ErrorCode, ...]] = {
    400: (ErrorCode.AUTH_INVALID_STATE,),
    401: (ErrorCode.AUTH_REQUIRED, ErrorCode.AUTH_INVALID_TOKEN, ErrorCode.AUTH_EXPIRED_TOKEN),
    403: (ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS, ErrorCode.CHAT_ACCESS_DENIED),
    404: (ErrorCode.RESOURCE_NOT_FOUND, ErrorCode.CHAT_NOT_FOUND, ErrorCode.AUTH_PROVIDER_NOT_CONFIGURED),
    422: (ErrorCode.VALIDATION_ERROR,),
    429: (ErrorCode.RATE_LIMITED, ErrorCode.EXTERNAL_RATE_LIMITED),
    502: (ErrorCode.EXTERNAL_SERVICE_ERROR, ErrorCode.OPENAI_ERROR, ErrorCode.OAUTH_PROVIDER_ERROR),
    503: (ErrorCode.EXTERNAL_TIMEOUT,),
}

#: Codes not listed map to 500
ERROR_CODE_TO_STATUS: dict[ErrorCode, int] = {
    code: status for status, codes in _STATUS_GROUPS.items() for code in codes
}


def get_status_code(error_code: ErrorCode) -> int:
    return ERROR_CODE_TO_STATUS.get(error_code, 500)
