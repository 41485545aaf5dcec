"""
Internal models shared between services and routes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

MessageRole = Literal["user", "assistant", "tool"]


class UserInfo(BaseModel):
    """Authenticated user as carried in the access token."""

    id: str
    email: str | None = None
    name: str | None = None
    image: str | None = None


@dataclass
class ChatRecord:
    id: str
    user_id: str
    title: str
    created_at: datetime
    message_count: int = 0


@dataclass
class MessageRecord:
    id: str
    chat_id: str
    role: MessageRole
    content: dict[str, Any]
    created_at: datetime


@dataclass
class OAuthProfile:
    """Normalized profile returned by an OAuth provider."""

    provider: str
    provider_user_id: str
    email: str | None
    name: str | None
    image: str | None

    @property
    def user_id(self) -> str:
        return f"{self.provider}:{self.provider_user_id}"
