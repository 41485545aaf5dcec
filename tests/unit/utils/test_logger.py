from __future__ import annotations

import logging

from unittest.mock import patch

import pytest

from cardchat.api.middleware.request_context import RequestContext, clear_request_context, set_request_context
from cardchat.utils.logger import ChatLogger, logger


@pytest.fixture
def chat_logger() -> ChatLogger:
    return ChatLogger("cardchat.test")


def test_redacts_pii(chat_logger: ChatLogger) -> None:
    text = "mail octocat@github.com key sk-abcdefghijklmnopqrstuvwxyz password=hunter2"

    redacted = chat_logger._redact_content(text)

    assert "[EMAIL]" in redacted
    assert "[API_KEY]" in redacted
    assert "hunter2" not in redacted


def test_chat_turn_hides_content_by_default(chat_logger: ChatLogger, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="cardchat.test"):
        chat_logger.log_chat_turn("What's AAPL at?", "227.52", tool_names=["getStockPrice"], duration_ms=812.0)

    record = caplog.records[-1]
    assert "[HIDDEN]" in record.getMessage()
    assert "AAPL" not in record.getMessage()
    assert record.tool_names == ["getStockPrice"]
    assert record.ms == 812


def test_chat_turn_content_when_enabled(chat_logger: ChatLogger, caplog: pytest.LogCaptureFixture) -> None:
    with (
        patch.object(ChatLogger, "_should_log_content", return_value=True),
        caplog.at_level(logging.INFO, logger="cardchat.test"),
    ):
        chat_logger.log_chat_turn("Weather in Paris?", "18°C", outcome="disconnected")

    message = caplog.records[-1].getMessage()
    assert "Weather in Paris?" in message
    assert "[disconnected]" in message


def test_request_context_is_attached(chat_logger: ChatLogger, caplog: pytest.LogCaptureFixture) -> None:
    set_request_context(RequestContext(request_id="req-1", user_id="github:583231"))
    try:
        with caplog.at_level(logging.INFO, logger="cardchat.test"):
            chat_logger.info("hello")
    finally:
        clear_request_context()

    record = caplog.records[-1]
    assert record.request_id == "req-1"
    assert record.instance_id == chat_logger.instance_id


def test_global_logger_exists() -> None:
    assert isinstance(logger, ChatLogger)
