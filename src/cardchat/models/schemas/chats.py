"""
Chat and message persistence schemas.

Provides request/response models for chat CRUD operations
with OpenAPI examples. Responses use camelCase field names.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cardchat.models.api_models import ChatRecord, MessageRecord, MessageRole

# =============================================================================
# Request Models
# =============================================================================


class CreateChatRequest(BaseModel):
    """Request body for creating a new chat."""

    model_config = ConfigDict(json_schema_extra={"example": {"title": "Trip planning"}})

    title: str | None = Field(
        default=None,
        max_length=200,
        description="Optional chat title (defaults to 'Chat <timestamp>')",
        json_schema_extra={"example": "Trip planning"},
    )


class AppendMessageRequest(BaseModel):
    """Request body for appending one message to a chat."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "role": "tool",
                "content": {
                    "toolName": "getWeather",
                    "result": {"location": "Paris", "tempC": 18, "description": "light rain"},
                },
            }
        }
    )

    role: MessageRole = Field(..., description="Message author")
    content: dict[str, Any] = Field(..., description="Structured message content (stored as jsonb)")


# =============================================================================
# Response Models
# =============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageResponse(_CamelModel):
    id: str
    chat_id: str
    role: MessageRole
    content: dict[str, Any]
    created_at: datetime

    @classmethod
    def from_record(cls, record: MessageRecord) -> MessageResponse:
        return cls(
            id=record.id,
            chat_id=record.chat_id,
            role=record.role,
            content=record.content,
            created_at=record.created_at,
        )


class ChatResponse(_CamelModel):
    """Chat summary as shown in the sidebar."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "0b7d6c1e-6a55-4d0c-9a3e-3f1f4c7f2b10",
                "userId": "github:1234567",
                "title": "Chat 2025-01-15 10:30",
                "createdAt": "2025-01-15T10:30:00Z",
                "messageCount": 4,
            }
        },
    )

    id: str
    user_id: str
    title: str
    created_at: datetime
    message_count: int = 0

    @classmethod
    def from_record(cls, record: ChatRecord) -> ChatResponse:
        return cls(
            id=record.id,
            user_id=record.user_id,
            title=record.title,
            created_at=record.created_at,
            message_count=record.message_count,
        )


class ChatDetailResponse(ChatResponse):
    """Chat with its messages in creation order."""

    messages: list[MessageResponse] = Field(default_factory=list)


class ChatListResponse(_CamelModel):
    chats: list[ChatResponse]
