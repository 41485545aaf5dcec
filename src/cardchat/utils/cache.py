"""In-process TTL cache for tool results.

Each worker holds its own entries. Eviction is least-recently-used once
``max_size`` is reached; expired entries are dropped lazily on read.
"""

from __future__ import annotations

import asyncio
import time

from collections import OrderedDict
from collections.abc import Callable
from typing import Any, NamedTuple


class _Entry(NamedTuple):
    value: Any
    expires_at: float


class TTLCache:
    """LRU cache with per-entry expiry, shared safely between coroutines."""

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            max_size: Entry count at which the least recently used entry is evicted
            default_ttl: Lifetime in seconds for ``set`` calls without ``ttl``
            clock: Monotonic seconds source
        """
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() >= entry.expires_at:
                del self._entries[key]
                entry = None

            if entry is None:
                self._misses += 1
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        lifetime = self._default_ttl if ttl is None else ttl
        async with self._lock:
            self._entries.pop(key, None)
            while len(self._entries) >= self._max_size:
                self._entries.popitem(last=False)
            self._entries[key] = _Entry(value, self._clock() + lifetime)

    def stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": f"{(self._hits / lookups if lookups else 0.0):.1%}",
        }
