"""Unit tests for mapping agents runner events to relay items."""

from __future__ import annotations

from collections.abc import AsyncIterator
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cardchat.api.services.upstream import (
    AgentsUpstreamProvider,
    UpstreamTextDelta,
    UpstreamToolResult,
    _AgentsStream,
    _decode_tool_output,
)
from cardchat.models.schemas.chat import ChatTurn
from cardchat.tools.registry import ToolRegistry


def raw_delta(text: str) -> SimpleNamespace:
    return SimpleNamespace(
        type="raw_response_event",
        data=SimpleNamespace(type="response.output_text.delta", delta=text),
    )


def run_item(item_type: str, raw_item: Any, output: Any = None) -> SimpleNamespace:
    return SimpleNamespace(
        type="run_item_stream_event",
        item=SimpleNamespace(type=item_type, raw_item=raw_item, output=output),
    )


class FakeRunResult:
    def __init__(self, events: list[Any]) -> None:
        self._events = events
        self.is_complete = False
        self.cancel = MagicMock()
        self.context_wrapper = SimpleNamespace(
            usage=SimpleNamespace(input_tokens=20, output_tokens=8, total_tokens=28)
        )

    async def stream_events(self) -> AsyncIterator[Any]:
        for event in self._events:
            yield event
        self.is_complete = True


@pytest.mark.asyncio
async def test_agents_stream_maps_text_and_tool_output() -> None:
    result = FakeRunResult(
        [
            SimpleNamespace(type="agent_updated_stream_event"),
            run_item("tool_call_item", SimpleNamespace(call_id="call_1", name="getWeather")),
            run_item("tool_call_output_item", {"call_id": "call_1"}, output='{"location": "Paris", "tempC": 18}'),
            raw_delta("It is "),
            raw_delta(""),
            SimpleNamespace(type="raw_response_event", data=SimpleNamespace(type="response.created")),
            raw_delta("18°C."),
        ]
    )
    stream = _AgentsStream(result)

    items = [item async for item in stream]

    assert items == [
        UpstreamToolResult(tool_name="getWeather", call_id="call_1", output={"location": "Paris", "tempC": 18}),
        UpstreamTextDelta("It is "),
        UpstreamTextDelta("18°C."),
    ]
    assert stream.usage.total_tokens == 28


@pytest.mark.asyncio
async def test_tool_output_without_known_call_is_unknown() -> None:
    result = FakeRunResult([run_item("tool_call_output_item", {"call_id": "call_9"}, output="plain text")])

    items = [item async for item in _AgentsStream(result)]

    assert items == [UpstreamToolResult(tool_name="unknown", call_id="call_9", output="plain text")]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('{"error": "boom"}', {"error": "boom"}),
        ("not json", "not json"),
        ({"already": "decoded"}, {"already": "decoded"}),
    ],
)
def test_decode_tool_output(raw: Any, expected: Any) -> None:
    assert _decode_tool_output(raw) == expected


@pytest.mark.asyncio
async def test_provider_cancels_unfinished_run() -> None:
    result = FakeRunResult([raw_delta("a"), raw_delta("b")])
    provider = AgentsUpstreamProvider(MagicMock(), model="gpt-4.1-mini")

    with patch("cardchat.api.services.upstream.Runner.run_streamed", return_value=result) as run_streamed:
        async with provider.open_stream([ChatTurn(role="user", content="hi")], ToolRegistry()) as stream:
            async for _ in stream:
                break

    result.cancel.assert_called_once()
    run_input = run_streamed.call_args.kwargs["input"]
    assert run_input == [{"role": "user", "content": "hi"}]


@pytest.mark.asyncio
async def test_provider_does_not_cancel_completed_run() -> None:
    result = FakeRunResult([raw_delta("done")])
    provider = AgentsUpstreamProvider(MagicMock(), model="gpt-4.1-mini")

    with patch("cardchat.api.services.upstream.Runner.run_streamed", return_value=result):
        async with provider.open_stream([ChatTurn(role="user", content="hi")], ToolRegistry()) as stream:
            _ = [item async for item in stream]

    result.cancel.assert_not_called()


@pytest.mark.asyncio
async def test_aclose_closes_openai_client() -> None:
    client = MagicMock()
    client.close = AsyncMock()
    provider = AgentsUpstreamProvider(client, model="gpt-4.1-mini")

    await provider.aclose()

    client.close.assert_awaited_once()
