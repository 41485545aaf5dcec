"""
Logging for cardchat: standard ``logging`` underneath, a ``ChatLogger``
facade on top.

Destinations:
- stderr: colored, human-readable lines
- logs/app.jsonl: INFO and above as JSON (chat turns, tool calls)
- logs/errors.jsonl: ERROR and above as JSON

File output can be turned off with ``CARDCHAT_FILE_LOGGING=false``.
Message content is hidden unless ``ENABLE_CONTENT_LOGGING`` is set, and
even then goes through PII redaction.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys
import uuid

from pathlib import Path
from typing import Any

from pythonjsonlogger import json as jsonlogger

from cardchat.api.middleware.request_context import get_request_context
from cardchat.core.constants import (
    INSTANCE_ID_LENGTH,
    LOG_BACKUP_COUNT_APP,
    LOG_BACKUP_COUNT_ERRORS,
    LOG_MAX_SIZE,
    LOG_PREVIEW_LENGTH,
    PROJECT_ROOT,
    get_settings,
)

REDACTION_PATTERNS = [
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[EMAIL]"),
    (re.compile(r"\b(?:\d{4}[- ]?){3}\d{4}\b"), "[CARD]"),
    (re.compile(r"\b(sk-|pk-|api[-_]?key[-_]?)[A-Za-z0-9]{20,}\b"), "[API_KEY]"),
    (re.compile(r"\b(password|secret|token)\s*[:=]\s*\S+"), "[REDACTED]"),
]

_TRUTHY = ("true", "1", "yes")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in _TRUTHY


class MinLevelFilter(logging.Filter):
    """Pass records at or above ``level`` regardless of the handler level."""

    def __init__(self, level: int) -> None:
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.level


class ColoredConsoleFormatter(logging.Formatter):
    """``HH:MM:SS [LEVEL] logger - message`` with the level colored."""

    RESET = "\x1b[0m"
    BOLD = "\x1b[1m"
    LEVEL_COLORS = {
        logging.DEBUG: "\x1b[38;20m",
        logging.INFO: "\x1b[32;20m",
        logging.WARNING: "\x1b[33;20m",
        logging.ERROR: "\x1b[31;20m",
        logging.CRITICAL: "\x1b[31;1m",
    }

    def _paint(self, text: str, level: int) -> str:
        color = self.LEVEL_COLORS.get(level)
        return f"{color}{text}{self.RESET}" if color else text

    def _access_line(self, record: logging.LogRecord) -> str:
        # uvicorn.access args: (client_addr, method, full_path, http_version, status_code)
        client_addr, method, full_path, http_version, status_code = record.args  # type: ignore[misc]
        status = int(status_code)
        status_level = logging.INFO if status < 400 else logging.WARNING if status < 500 else logging.ERROR
        return (
            f'{client_addr} - "{self.BOLD}{method}{self.RESET} {full_path} HTTP/{http_version}" '
            f"{self._paint(str(status), status_level)}"
        )

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, "%H:%M:%S")
        level = self._paint(f"[{record.levelname}]", record.levelno)

        is_access = record.name == "uvicorn.access" and isinstance(record.args, tuple) and len(record.args) == 5
        body = self._access_line(record) if is_access else record.getMessage()

        line = f"{timestamp} {level} {record.name} - {body}"
        if record.exc_info and not is_access:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_uvicorn_logging() -> None:
    """Route uvicorn's access and error loggers through the console formatter."""
    logging.getLogger("uvicorn").handlers = []
    logging.getLogger("uvicorn").setLevel(logging.INFO)

    for name in ("uvicorn.access", "uvicorn.error"):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColoredConsoleFormatter())

        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.setLevel(logging.INFO)
        uvicorn_logger.propagate = False


def _json_file_handler(path: Path, level: int, backups: int, fmt: str) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=LOG_MAX_SIZE, backupCount=backups, encoding="utf-8")
    handler.setLevel(level)
    handler.addFilter(MinLevelFilter(level))
    handler.setFormatter(jsonlogger.JsonFormatter(fmt, timestamp=True))
    return handler


def setup_logging(name: str = "cardchat", debug: bool | None = None) -> logging.Logger:
    """Attach console and (optionally) rotating JSON file handlers to ``name``.

    Args:
        name: Logger name
        debug: Console level DEBUG instead of INFO; defaults to the DEBUG env var
    """
    if debug is None:
        debug = _env_flag("DEBUG", "false")

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if debug else logging.INFO)
    console.setFormatter(ColoredConsoleFormatter())

    log = logging.getLogger(name)
    log.setLevel(logging.DEBUG)  # handlers decide what is emitted
    log.handlers = [console]

    if not _env_flag("CARDCHAT_FILE_LOGGING", "true"):
        return log

    log_dir = PROJECT_ROOT / "logs"
    log_dir.mkdir(exist_ok=True)
    log.addHandler(
        _json_file_handler(
            log_dir / "app.jsonl",
            logging.INFO,
            LOG_BACKUP_COUNT_APP,
            "%(timestamp)s %(levelname)s %(message)s %(request_id)s %(user_id)s %(chat_id)s %(tokens)s %(func)s",
        )
    )
    log.addHandler(
        _json_file_handler(
            log_dir / "errors.jsonl",
            logging.ERROR,
            LOG_BACKUP_COUNT_ERRORS,
            "%(timestamp)s %(levelname)s %(name)s %(message)s %(request_id)s",
        )
    )
    return log


class ChatLogger:
    """Logger facade that stamps every record with the request context and a process id."""

    def __init__(self, name: str = "cardchat"):
        self.logger = setup_logging(name)
        self.instance_id = uuid.uuid4().hex[:INSTANCE_ID_LENGTH]

    def _enrich_context(self, fields: dict[str, Any]) -> dict[str, Any]:
        fields.setdefault("instance_id", self.instance_id)
        context = get_request_context()
        if context is not None:
            for key, value in context.to_log_context().items():
                fields.setdefault(key, value)
        return fields

    def debug(self, message: str, **kwargs: Any) -> None:
        self.logger.debug(message, extra=self._enrich_context(kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(message, extra=self._enrich_context(kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self.logger.warning(message, extra=self._enrich_context(kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self.logger.error(message, extra=self._enrich_context(kwargs), exc_info=exc_info)

    def _should_log_content(self) -> bool:
        try:
            return bool(get_settings().enable_content_logging)
        except ValueError:
            # Invalid settings: never leak content
            return False

    def _redact_content(self, text: str) -> str:
        for pattern, replacement in REDACTION_PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def _preview(self, text: str) -> str:
        preview = self._redact_content(text[:LOG_PREVIEW_LENGTH].replace("\n", " "))
        return preview + "..." if len(text) > LOG_PREVIEW_LENGTH else preview

    def log_chat_turn(
        self,
        user_input: str,
        response: str,
        tool_names: list[str] | None = None,
        duration_ms: float | None = None,
        tokens_used: int | None = None,
        outcome: str = "done",
    ) -> None:
        """One line per relayed turn; message text only when content logging is on.

        Args:
            user_input: Last user turn
            response: Concatenated deltas sent to the browser
            tool_names: Tools the model called, in order
            duration_ms: Wall time of the relay
            tokens_used: Total tokens reported by the provider
            outcome: ``done``, ``error`` or ``disconnected``
        """
        show_content = self._should_log_content()
        if show_content:
            summary = f"User: {self._preview(user_input)} → AI: {self._preview(response)}"
        else:
            summary = "User: [HIDDEN] → AI: [HIDDEN]"

        suffixes = []
        if tool_names:
            suffixes.append(f"[{len(tool_names)} tools]")
        if duration_ms:
            suffixes.append(f"[{duration_ms:.0f}ms]")
        if tokens_used:
            suffixes.append(f"[{tokens_used} tokens]")
        if outcome != "done":
            suffixes.append(f"[{outcome}]")

        fields: dict[str, Any] = {
            "chat_turn": True,
            "outcome": outcome,
            "chars_input": len(user_input),
            "chars_response": len(response),
            "content_logging": show_content,
        }
        if tool_names:
            fields["tool_names"] = tool_names
        if duration_ms is not None:
            fields["ms"] = int(duration_ms)
        if tokens_used is not None:
            fields["tokens"] = tokens_used

        self.logger.info(" ".join([summary, *suffixes]), extra=self._enrich_context(fields))

    def log_function_call(self, function_name: str, args: dict[str, Any], result: Any) -> None:
        if self._should_log_content():
            message = f"Tool call: {function_name}({self._redact_content(str(args))}) → {str(result)[:50]}..."
        else:
            message = f"Tool call: {function_name}(...) → [HIDDEN]"
        self.logger.info(message, extra=self._enrich_context({"func": function_name}))


logger = ChatLogger()
