"""Fixed-window admission control for the chat endpoint.

Each caller identity gets a counter that resets when its window ends:
- the first request (or the first after expiry) opens a window of
  ``window_seconds`` and is admitted with ``count=1``
- further requests are admitted while ``count < max_requests``
- beyond that, requests are denied until ``window_end`` with no mutation

The table lives in process memory. Each worker process keeps its own, so
limits are per-process, not global. A background task sweeps expired
windows; an expired entry left in place behaves exactly like an absent one.
"""

from __future__ import annotations

import asyncio
import contextlib
import math
import threading
import time

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from fastapi.responses import JSONResponse

from cardchat.core.constants import (
    CHAT_RATE_LIMIT_MAX_REQUESTS,
    CHAT_RATE_LIMIT_WINDOW_SECONDS,
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS,
    get_settings,
)
from cardchat.utils.logger import logger
from cardchat.utils.metrics import rate_limit_decisions_total, rate_limit_windows_active


@dataclass(frozen=True)
class RateLimitConfig:
    """Quota for one fixed window."""

    max_requests: int = CHAT_RATE_LIMIT_MAX_REQUESTS
    window_seconds: float = CHAT_RATE_LIMIT_WINDOW_SECONDS

    def __post_init__(self) -> None:
        if self.max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")


@dataclass
class RateWindow:
    """Requests observed for one identity in its current window."""

    count: int
    window_end: float


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one admission check."""

    admitted: bool
    limit: int
    remaining: int
    reset_at: float
    now: float

    @property
    def retry_after(self) -> int:
        """Whole seconds until the window resets, rounded up."""
        return max(0, math.ceil(self.reset_at - self.now))

    @property
    def reset_time(self) -> str:
        """Window end as ISO-8601 (UTC)."""
        return _iso(self.reset_at)

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": self.reset_time,
        }
        if not self.admitted:
            headers["Retry-After"] = str(self.retry_after)
        return headers

    def body(self) -> dict[str, Any]:
        return {
            "error": "Rate limit exceeded",
            "limit": self.limit,
            "resetTime": self.reset_time,
            "retryAfter": self.retry_after,
        }


class FixedWindowRateLimiter:
    """In-memory fixed window counter keyed by caller identity.

    ``check_and_consume`` is synchronous and holds a plain lock for the
    read-modify-write, so concurrent requests for one identity can never
    be admitted past the limit. Nothing inside the critical section awaits.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        sweep_interval: float = RATE_LIMIT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            config: Window quota (defaults to 10 requests per 60 seconds)
            sweep_interval: How often to drop expired windows (seconds)
            clock: Wall-clock source in seconds since epoch (injectable for tests)
        """
        self.config = config or RateLimitConfig()
        self._windows: dict[str, RateWindow] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._sweep_task: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def check_and_consume(self, identity: str) -> RateLimitDecision:
        """Admit or deny one request for ``identity``, consuming quota when admitted."""
        if not identity:
            raise ValueError("identity must be a non-empty string")

        limit = self.config.max_requests
        with self._lock:
            now = self._clock()
            window = self._windows.get(identity)

            if window is None or now >= window.window_end:
                window = RateWindow(count=1, window_end=now + self.config.window_seconds)
                self._windows[identity] = window
                decision = RateLimitDecision(True, limit, limit - 1, window.window_end, now)
            elif window.count >= limit:
                decision = RateLimitDecision(False, limit, 0, window.window_end, now)
            else:
                window.count += 1
                decision = RateLimitDecision(True, limit, limit - window.count, window.window_end, now)

        rate_limit_decisions_total.labels(outcome="admitted" if decision.admitted else "denied").inc()
        return decision

    def sweep_expired(self) -> int:
        """Remove windows whose end has passed. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [identity for identity, window in self._windows.items() if window.window_end <= now]
            for identity in expired:
                del self._windows[identity]
            remaining = len(self._windows)

        rate_limit_windows_active.set(remaining)
        if expired:
            logger.debug(f"Rate limiter sweep: removed {len(expired)} expired windows")
        return len(expired)

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop())
            logger.info("Rate limiter sweep task started")

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if self._sweep_task:
            self._sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweep_task
            self._sweep_task = None
            logger.info("Rate limiter sweep task stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.sweep_expired()


def rate_limit_exceeded_response(decision: RateLimitDecision) -> JSONResponse:
    """429 response carrying the rate-limit headers and body."""
    return JSONResponse(status_code=429, content=decision.body(), headers=decision.headers())


# Module-level singleton
_rate_limiter: FixedWindowRateLimiter | None = None


def get_rate_limiter() -> FixedWindowRateLimiter:
    """Get or create the process-wide chat rate limiter."""
    global _rate_limiter  # noqa: PLW0603
    if _rate_limiter is None:
        settings = get_settings()
        _rate_limiter = FixedWindowRateLimiter(
            RateLimitConfig(
                max_requests=settings.chat_rate_limit_max_requests,
                window_seconds=settings.chat_rate_limit_window_seconds,
            ),
            sweep_interval=settings.rate_limit_sweep_interval_seconds,
        )
    return _rate_limiter


def reset_rate_limiter() -> None:
    """Drop the singleton (tests, settings reload)."""
    global _rate_limiter  # noqa: PLW0603
    _rate_limiter = None


__all__ = [
    "FixedWindowRateLimiter",
    "RateLimitConfig",
    "RateLimitDecision",
    "RateWindow",
    "get_rate_limiter",
    "rate_limit_exceeded_response",
    "reset_rate_limiter",
]
