"""Unit tests for fixed-window chat admission control."""

from __future__ import annotations

import asyncio
import threading

from unittest.mock import patch

import pytest

from cardchat.api.middleware.rate_limiter import (
    FixedWindowRateLimiter,
    RateLimitConfig,
    RateLimitDecision,
    get_rate_limiter,
    rate_limit_exceeded_response,
    reset_rate_limiter,
)
from cardchat.core.constants import Settings

T0 = 1_700_000_000.0


class FakeClock:
    """Settable wall clock in seconds."""

    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(RateLimitConfig(max_requests=3, window_seconds=1.0), clock=clock)


class TestRateLimitConfig:
    def test_defaults(self) -> None:
        config = RateLimitConfig()
        assert config.max_requests == 10
        assert config.window_seconds == 60.0

    @pytest.mark.parametrize("kwargs", [{"max_requests": 0}, {"window_seconds": 0}, {"window_seconds": -1}])
    def test_rejects_non_positive_values(self, kwargs: dict[str, float]) -> None:
        with pytest.raises(ValueError):
            RateLimitConfig(**kwargs)  # type: ignore[arg-type]


class TestFixedWindow:
    """Window semantics: three per second, one identity."""

    def test_scenario_three_per_second(self, limiter: FixedWindowRateLimiter, clock: FakeClock) -> None:
        decisions = [limiter.check_and_consume("u1") for _ in range(3)]
        assert [d.admitted for d in decisions] == [True, True, True]
        assert [d.remaining for d in decisions] == [2, 1, 0]
        assert all(d.reset_at == T0 + 1.0 for d in decisions)

        clock.advance(0.5)
        denied = limiter.check_and_consume("u1")
        assert denied.admitted is False
        assert denied.remaining == 0
        assert denied.reset_at == pytest.approx(T0 + 1.0)

        clock.advance(0.6)
        fresh = limiter.check_and_consume("u1")
        assert fresh.admitted is True
        assert fresh.remaining == 2
        assert fresh.reset_at == pytest.approx(T0 + 2.1)

    def test_denial_does_not_extend_window(self, limiter: FixedWindowRateLimiter, clock: FakeClock) -> None:
        for _ in range(3):
            limiter.check_and_consume("u1")
        for _ in range(5):
            clock.advance(0.1)
            assert limiter.check_and_consume("u1").admitted is False

        clock.advance(0.6)  # past window end
        assert limiter.check_and_consume("u1").admitted is True

    def test_identities_are_independent(self, limiter: FixedWindowRateLimiter) -> None:
        for _ in range(3):
            limiter.check_and_consume("u1")
        assert limiter.check_and_consume("u1").admitted is False
        assert limiter.check_and_consume("u2").admitted is True
        assert len(limiter) == 2

    def test_empty_identity_rejected(self, limiter: FixedWindowRateLimiter) -> None:
        with pytest.raises(ValueError):
            limiter.check_and_consume("")
        assert len(limiter) == 0

    def test_concurrent_requests_never_exceed_limit(self) -> None:
        limiter = FixedWindowRateLimiter(RateLimitConfig(max_requests=10, window_seconds=60.0))
        results: list[bool] = []
        results_lock = threading.Lock()
        barrier = threading.Barrier(50)

        def worker() -> None:
            barrier.wait()
            admitted = limiter.check_and_consume("shared").admitted
            with results_lock:
                results.append(admitted)

        threads = [threading.Thread(target=worker) for _ in range(50)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 50
        assert results.count(True) == 10


class TestSweep:
    def test_sweep_removes_only_expired(self, limiter: FixedWindowRateLimiter, clock: FakeClock) -> None:
        limiter.check_and_consume("old")
        clock.advance(0.8)
        limiter.check_and_consume("new")

        clock.advance(0.3)
        assert limiter.sweep_expired() == 1
        assert len(limiter) == 1

        # A swept identity behaves exactly like an expired one
        decision = limiter.check_and_consume("old")
        assert decision.admitted is True
        assert decision.remaining == 2

    @pytest.mark.asyncio
    async def test_start_and_stop_sweep_task(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(RateLimitConfig(3, 1.0), sweep_interval=0.01, clock=clock)
        limiter.check_and_consume("u1")
        clock.advance(2.0)

        await limiter.start()
        await asyncio.sleep(0.05)
        await limiter.stop()

        assert len(limiter) == 0
        assert limiter._sweep_task is None


class TestDecision:
    def test_admitted_headers(self) -> None:
        decision = RateLimitDecision(True, 10, 7, reset_at=T0 + 60, now=T0)
        headers = decision.headers()
        assert headers["X-RateLimit-Limit"] == "10"
        assert headers["X-RateLimit-Remaining"] == "7"
        assert headers["X-RateLimit-Reset"].endswith("Z")
        assert "Retry-After" not in headers

    def test_denied_headers_and_body(self) -> None:
        decision = RateLimitDecision(False, 10, 0, reset_at=T0 + 41.2, now=T0)
        assert decision.retry_after == 42
        assert decision.headers()["Retry-After"] == "42"

        body = decision.body()
        assert body["error"] == "Rate limit exceeded"
        assert body["limit"] == 10
        assert body["retryAfter"] == 42
        assert body["resetTime"] == decision.reset_time

    def test_exceeded_response(self) -> None:
        decision = RateLimitDecision(False, 3, 0, reset_at=T0 + 5, now=T0)
        response = rate_limit_exceeded_response(decision)
        assert response.status_code == 429
        assert response.headers["retry-after"] == "5"
        assert response.headers["x-ratelimit-remaining"] == "0"


class TestSingleton:
    def test_built_from_settings(self, test_settings: Settings) -> None:
        reset_rate_limiter()
        with patch("cardchat.api.middleware.rate_limiter.get_settings", return_value=test_settings):
            limiter = get_rate_limiter()
        assert limiter.config.max_requests == 3
        assert get_rate_limiter() is limiter
