"""
SSE event models for the chat stream.

Each frame sent to the browser is one of these models serialized as
``data: <json>\\n\\n``. Field names go over the wire in camelCase.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cardchat.core.constants import (
    SSE_TYPE_DONE,
    SSE_TYPE_ERROR,
    SSE_TYPE_TEXT_DELTA,
    SSE_TYPE_TOOL_RESULT,
)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Usage(_WireModel):
    """Token accounting reported by the model provider."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class TextDeltaEvent(_WireModel):
    """One incremental text fragment plus the running usage."""

    type: Literal["text-delta"] = SSE_TYPE_TEXT_DELTA
    delta: str
    usage: Usage = Field(default_factory=Usage)


class ToolResultEvent(_WireModel):
    """A completed tool call; the browser renders ``result`` as a card."""

    type: Literal["tool-result"] = SSE_TYPE_TOOL_RESULT
    tool_name: str
    tool_call_id: str | None = None
    result: Any = None


class DoneEvent(_WireModel):
    type: Literal["done"] = SSE_TYPE_DONE
    usage: Usage = Field(default_factory=Usage)


class ErrorEvent(_WireModel):
    """Terminal failure after streaming started. Never followed by ``done``."""

    type: Literal["error"] = SSE_TYPE_ERROR
    error: str


StreamEvent = Annotated[
    TextDeltaEvent | ToolResultEvent | DoneEvent | ErrorEvent,
    Field(discriminator="type"),
]


def encode_sse(event: TextDeltaEvent | ToolResultEvent | DoneEvent | ErrorEvent) -> str:
    """Serialize one event as an SSE ``data:`` frame."""
    return f"data: {event.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


__all__ = [
    "DoneEvent",
    "ErrorEvent",
    "StreamEvent",
    "TextDeltaEvent",
    "ToolResultEvent",
    "Usage",
    "encode_sse",
]
