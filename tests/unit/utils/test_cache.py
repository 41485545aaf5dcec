"""Unit tests for TTLCache."""

from __future__ import annotations

import pytest

from cardchat.utils.cache import TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> TTLCache:
    return TTLCache(max_size=3, default_ttl=10.0, clock=clock)


@pytest.mark.asyncio
async def test_set_and_get(cache: TTLCache) -> None:
    await cache.set("weather:paris", {"tempC": 18})

    assert await cache.get("weather:paris") == {"tempC": 18}
    assert await cache.get("weather:london") is None


@pytest.mark.asyncio
async def test_entry_expires(cache: TTLCache, clock: FakeClock) -> None:
    await cache.set("stock:aapl", 227.52)

    clock.now += 9.9
    assert await cache.get("stock:aapl") == 227.52

    clock.now += 0.1
    assert await cache.get("stock:aapl") is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_per_entry_ttl(cache: TTLCache, clock: FakeClock) -> None:
    await cache.set("f1:next", {"round": 19}, ttl=3600.0)

    clock.now += 600.0
    assert await cache.get("f1:next") == {"round": 19}


@pytest.mark.asyncio
async def test_lru_eviction(cache: TTLCache) -> None:
    for key in ("a", "b", "c"):
        await cache.set(key, key)

    await cache.get("a")  # a becomes most recently used
    await cache.set("d", "d")

    assert await cache.get("b") is None
    assert await cache.get("a") == "a"
    assert len(cache) == 3


@pytest.mark.asyncio
async def test_stats(cache: TTLCache) -> None:
    await cache.set("a", 1)
    await cache.get("a")
    await cache.get("missing")

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["size"] == 1
    assert stats["hit_rate"] == "50.0%"
