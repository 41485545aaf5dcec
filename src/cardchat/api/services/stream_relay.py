"""
Token stream relay.

Opens a streaming generation upstream and re-frames each increment as a
stream event for the browser:

    Idle -> Generating -> Done | Failed | Disconnected

- every upstream text increment becomes one ``text-delta``, in order, unbatched
- every tool result becomes one ``tool-result`` (the browser renders a card)
- success ends with exactly one ``done`` carrying final usage; if no text was
  produced a fallback ``text-delta`` precedes it
- an upstream failure ends with one ``error`` and no ``done``
- a client disconnect stops forwarding

``StreamRelay.open`` starts the upstream before any event is sent, so a
failure there can still be answered with a plain error status. The opened
``RelaySession`` holds the upstream on an ``AsyncExitStack`` that ``events``
closes on every exit path; ``aclose`` covers a response whose body never ran.
"""

from __future__ import annotations

import time

from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import AsyncExitStack

from cardchat.api.services.upstream import (
    UpstreamProvider,
    UpstreamStream,
    UpstreamTextDelta,
    UpstreamToolResult,
)
from cardchat.core.constants import FALLBACK_RESPONSE_TEXT
from cardchat.models.event_models import DoneEvent, ErrorEvent, TextDeltaEvent, ToolResultEvent, Usage
from cardchat.models.schemas.chat import ChatTurn
from cardchat.tools.registry import ToolRegistry
from cardchat.utils.logger import logger
from cardchat.utils.metrics import stream_events_total, streams_active, streams_total, tokens_total

RelayEvent = TextDeltaEvent | ToolResultEvent | DoneEvent | ErrorEvent
DisconnectCheck = Callable[[], Awaitable[bool]]

STREAM_ERROR_MESSAGE = "The response could not be completed. Please try again."


class RelaySession:
    """An opened upstream generation, ready to be relayed once."""

    def __init__(
        self,
        conversation: Sequence[ChatTurn],
        stream: UpstreamStream,
        stack: AsyncExitStack,
        fallback_text: str = FALLBACK_RESPONSE_TEXT,
    ) -> None:
        self.conversation = conversation
        self.fallback_text = fallback_text
        self._stream = stream
        self._stack = stack

    async def aclose(self) -> None:
        """Release the upstream stream; safe to call more than once."""
        await self._stack.aclose()

    async def events(self, is_disconnected: DisconnectCheck | None = None) -> AsyncIterator[RelayEvent]:
        """Yield stream events until a terminal state, then release the upstream."""
        start = time.perf_counter()
        text_parts: list[str] = []
        tool_names: list[str] = []
        usage = Usage()
        outcome = "disconnected"  # any exit not reached below is a torn-down response

        streams_active.inc()
        try:
            try:
                async for item in self._stream:
                    if is_disconnected is not None and await is_disconnected():
                        logger.info("Client disconnected, stopping relay")
                        return

                    if isinstance(item, UpstreamTextDelta):
                        if not item.text:
                            continue
                        text_parts.append(item.text)
                        yield _count(TextDeltaEvent(delta=item.text, usage=self._stream.usage))
                    elif isinstance(item, UpstreamToolResult):
                        tool_names.append(item.tool_name)
                        yield _count(
                            ToolResultEvent(
                                tool_name=item.tool_name,
                                tool_call_id=item.call_id,
                                result=item.output,
                            )
                        )

                usage = self._stream.usage
            except Exception as exc:
                outcome = "error"
                logger.error(f"Upstream stream failed: {exc}", exc_info=True)
                yield _count(ErrorEvent(error=STREAM_ERROR_MESSAGE))
                return

            if not text_parts:
                logger.warning("Upstream finished without text, sending fallback response")
                yield _count(TextDeltaEvent(delta=self.fallback_text, usage=usage))

            outcome = "done"
            yield _count(DoneEvent(usage=usage))
        finally:
            streams_active.dec()
            streams_total.labels(outcome=outcome).inc()
            tokens_total.labels(kind="input").inc(usage.input_tokens)
            tokens_total.labels(kind="output").inc(usage.output_tokens)
            logger.log_chat_turn(
                user_input=self.conversation[-1].content if self.conversation else "",
                response="".join(text_parts),
                tool_names=tool_names,
                duration_ms=(time.perf_counter() - start) * 1000,
                tokens_used=usage.total_tokens or None,
                outcome=outcome,
            )
            await self.aclose()


class StreamRelay:
    """Relays one upstream generation as stream events."""

    def __init__(
        self,
        provider: UpstreamProvider,
        registry: ToolRegistry,
        fallback_text: str = FALLBACK_RESPONSE_TEXT,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.fallback_text = fallback_text

    async def open(self, conversation: Sequence[ChatTurn]) -> RelaySession:
        """Start the upstream generation.

        Raises whatever the provider raises while opening, so the caller can
        still answer with a plain error status before any event is sent.
        """
        stack = AsyncExitStack()
        try:
            stream = await stack.enter_async_context(self.provider.open_stream(conversation, self.registry))
        except BaseException:
            streams_total.labels(outcome="error").inc()
            await stack.aclose()
            raise

        return RelaySession(conversation, stream, stack, self.fallback_text)


def _count(event: RelayEvent) -> RelayEvent:
    stream_events_total.labels(type=event.type).inc()
    return event
