"""
In-Memory Cache Backend

Bounded LRU store with per-entry expiry. Used when no durable store is
configured, and as the degrade target when the durable store fails.

This is a per-process cache, not shared across workers.

Author: System Architect
Date: 2025-12-13
"""

import asyncio
import time
from collections import OrderedDict
from collections.abc import Callable

from tutor_gateway.core.config.constants import CACHE_MEMORY_MAX_SIZE


class InMemoryCacheBackend:
    """
    In-memory LRU cache storage with TTL.

    Implementation Details:
    - OrderedDict for O(1) access and LRU ordering
    - asyncio.Lock around every mutation
    - Evicts least recently used items when at capacity
    - Expired entries are dropped lazily on read
    """

    name = "memory"

    def __init__(self, max_size: int = CACHE_MEMORY_MAX_SIZE, clock: Callable[[], float] = time.monotonic):
        self._max_size = max_size
        self._clock = clock
        self._cache: OrderedDict[str, tuple[str, float | None]] = OrderedDict()
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        async with self._lock:
            self._cache.clear()

    async def get(self, key: str) -> str | None:
        async with self._lock:
            item = self._cache.get(key)
            if item is None:
                return None

            value, expires_at = item
            if expires_at is not None and self._clock() >= expires_at:
                del self._cache[key]
                return None

            # Mark as recently used
            self._cache.move_to_end(key)
            return value

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        expires_at = self._clock() + ttl if ttl else None
        async with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            self._cache[key] = (value, expires_at)

            while len(self._cache) > self._max_size:
                self._cache.popitem(last=False)  # Remove oldest (front)
        return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._cache.pop(key, None) is not None

    def get_size(self) -> int:
        return len(self._cache)

    def get_keys(self) -> list[str]:
        """Keys in LRU order (oldest first)."""
        return list(self._cache.keys())
