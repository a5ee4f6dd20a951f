"""
Unit Tests for InMemoryCacheBackend

Tests LRU eviction and per-entry expiry with an injected clock.
"""

import pytest

from tutor_gateway.core.interfaces.cache import CacheBackend
from tutor_gateway.infrastructure.cache.memory_cache import InMemoryCacheBackend


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.unit
class TestInMemoryCacheBackend:
    """Test suite for the bounded LRU store."""

    def test_implements_cache_backend_protocol(self):
        assert isinstance(InMemoryCacheBackend(), CacheBackend)

    async def test_set_then_get(self):
        backend = InMemoryCacheBackend()
        assert await backend.set("k", "v") is True
        assert await backend.get("k") == "v"

    async def test_missing_key_returns_none(self):
        assert await InMemoryCacheBackend().get("absent") is None

    async def test_overwrite_replaces_value(self):
        backend = InMemoryCacheBackend()
        await backend.set("k", "old")
        await backend.set("k", "new")
        assert await backend.get("k") == "new"
        assert backend.get_size() == 1

    async def test_evicts_least_recently_used(self):
        # Arrange
        backend = InMemoryCacheBackend(max_size=2)
        await backend.set("a", "1")
        await backend.set("b", "2")

        # Act: touch "a" so "b" becomes the oldest
        await backend.get("a")
        await backend.set("c", "3")

        # Assert
        assert await backend.get("b") is None
        assert await backend.get("a") == "1"
        assert await backend.get("c") == "3"
        assert backend.get_size() == 2

    async def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        backend = InMemoryCacheBackend(clock=clock)
        await backend.set("k", "v", ttl=60)

        clock.now += 59
        assert await backend.get("k") == "v"

        clock.now += 1
        assert await backend.get("k") is None
        assert backend.get_size() == 0

    async def test_entry_without_ttl_never_expires(self):
        clock = FakeClock()
        backend = InMemoryCacheBackend(clock=clock)
        await backend.set("k", "v")

        clock.now += 10**9
        assert await backend.get("k") == "v"

    async def test_delete(self):
        backend = InMemoryCacheBackend()
        await backend.set("k", "v")
        assert await backend.delete("k") is True
        assert await backend.delete("k") is False

    async def test_close_clears_entries(self):
        backend = InMemoryCacheBackend()
        await backend.set("k", "v")
        await backend.close()
        assert backend.get_keys() == []
