"""
Upstream generation providers for the stream relay.

The relay only needs an async context manager that yields an iterator of
text deltas and tool results plus a running usage snapshot. Leaving the
context releases the upstream stream, whatever the exit path.
"""

from __future__ import annotations

import json

from collections.abc import AsyncIterator, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import Any, Protocol

from agents import RunConfig, Runner
from agents.models.openai_provider import OpenAIProvider
from openai import AsyncOpenAI

from cardchat.core.agent import create_agent
from cardchat.core.constants import (
    MAX_CONVERSATION_TURNS,
    OUTPUT_TEXT_DELTA_EVENT,
    RAW_RESPONSE_EVENT,
    RUN_ITEM_STREAM_EVENT,
    TOOL_CALL_ITEM,
    TOOL_CALL_OUTPUT_ITEM,
)
from cardchat.core.prompts import SYSTEM_INSTRUCTIONS
from cardchat.models.event_models import Usage
from cardchat.models.schemas.chat import ChatTurn
from cardchat.tools.registry import ToolRegistry
from cardchat.utils.logger import logger


@dataclass(frozen=True)
class UpstreamTextDelta:
    text: str


@dataclass(frozen=True)
class UpstreamToolResult:
    tool_name: str
    call_id: str | None
    output: Any


UpstreamItem = UpstreamTextDelta | UpstreamToolResult


class UpstreamStream(Protocol):
    """One in-flight generation."""

    @property
    def usage(self) -> Usage: ...

    def __aiter__(self) -> AsyncIterator[UpstreamItem]: ...


class UpstreamProvider(Protocol):
    def open_stream(
        self, conversation: Sequence[ChatTurn], tools: ToolRegistry
    ) -> AbstractAsyncContextManager[UpstreamStream]: ...


def _decode_tool_output(output: Any) -> Any:
    """Registry tools return JSON strings; cards want the decoded payload."""
    if isinstance(output, str):
        try:
            return json.loads(output)
        except ValueError:
            return output
    return output


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


class _AgentsStream:
    """Adapts a ``RunResultStreaming`` to the relay's item iterator."""

    def __init__(self, result: Any) -> None:
        self._result = result
        self._tool_names: dict[str, str] = {}

    @property
    def usage(self) -> Usage:
        usage = self._result.context_wrapper.usage
        return Usage(
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=usage.total_tokens,
        )

    async def __aiter__(self) -> AsyncIterator[UpstreamItem]:
        async for event in self._result.stream_events():
            if event.type == RAW_RESPONSE_EVENT:
                data = event.data
                if getattr(data, "type", None) == OUTPUT_TEXT_DELTA_EVENT and data.delta:
                    yield UpstreamTextDelta(data.delta)

            elif event.type == RUN_ITEM_STREAM_EVENT:
                item = event.item
                if item.type == TOOL_CALL_ITEM:
                    call_id = _field(item.raw_item, "call_id")
                    name = _field(item.raw_item, "name")
                    if call_id and name:
                        self._tool_names[call_id] = name
                elif item.type == TOOL_CALL_OUTPUT_ITEM:
                    call_id = _field(item.raw_item, "call_id")
                    yield UpstreamToolResult(
                        tool_name=self._tool_names.get(call_id or "", "unknown"),
                        call_id=call_id,
                        output=_decode_tool_output(item.output),
                    )


class AgentsUpstreamProvider:
    """Runs the conversation through ``Runner.run_streamed`` on an AsyncOpenAI client."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        instructions: str = SYSTEM_INSTRUCTIONS,
        max_turns: int = MAX_CONVERSATION_TURNS,
    ) -> None:
        self._client = client
        # Per-provider model lookup keeps this client isolated from any global default
        self._model_provider = OpenAIProvider(openai_client=client)
        self.model = model
        self.instructions = instructions
        self.max_turns = max_turns

    async def aclose(self) -> None:
        """Close the OpenAI client and the httpx client underneath it."""
        await self._client.close()

    @asynccontextmanager
    async def open_stream(
        self, conversation: Sequence[ChatTurn], tools: ToolRegistry
    ) -> AsyncIterator[UpstreamStream]:
        agent = create_agent(self.model, self.instructions, tools.agent_tools())
        run_input: list[Any] = [{"role": turn.role, "content": turn.content} for turn in conversation]

        result = Runner.run_streamed(
            agent,
            input=run_input,
            run_config=RunConfig(model_provider=self._model_provider, tracing_disabled=True),
            max_turns=self.max_turns,
        )
        try:
            yield _AgentsStream(result)
        finally:
            if not result.is_complete:
                logger.info("Cancelling unfinished upstream run")
                result.cancel()
