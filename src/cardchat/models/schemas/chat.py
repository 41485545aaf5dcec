"""
Streaming chat request schema.

The browser posts the whole visible conversation on every turn; the
server keeps no conversation state between requests.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

ChatRole = Literal["user", "assistant", "system", "tool"]


class ChatTurn(BaseModel):
    """One conversation turn as sent by the browser."""

    role: ChatRole = Field(..., description="Author of the turn")
    content: str = Field(..., description="Plain text content")
    id: str | None = Field(default=None, description="Client-side message id")


class ChatRequest(BaseModel):
    """Request body for ``POST /api/chat``."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "messages": [
                    {"role": "user", "content": "What's the weather in Paris?", "id": "m1"},
                ]
            }
        }
    )

    messages: list[ChatTurn] = Field(..., min_length=1, description="Ordered conversation turns")

    @model_validator(mode="after")
    def last_turn_from_user(self) -> ChatRequest:
        if self.messages[-1].role != "user":
            raise ValueError("Last message must be from user")
        return self

    def upstream_turns(self) -> list[ChatTurn]:
        """Turns forwarded to the model. Tool-role turns are client-side card records."""
        return [turn for turn in self.messages if turn.role != "tool"]
