"""
Unit Tests for ResponseCache

Tests the look-aside contract: round trips, skipped writes, expiry and the
one-way degrade to the in-memory store.
"""

from datetime import datetime, timedelta, timezone

import orjson
import pytest

from tests.test_fixtures.cache_factory import CacheTestFactory, FakeRedisClient
from tutor_gateway.core.exceptions import CacheConnectionError
from tutor_gateway.infrastructure.cache.memory_cache import InMemoryCacheBackend
from tutor_gateway.infrastructure.cache.response_cache import CacheEntry, ResponseCache
from tutor_gateway.llm_stream.models.stream_request import Usage

ANSWER = "La PEEP es la presión positiva espiratoria"
FINGERPRINT = "a" * 64


class UnreachableBackend:
    """Durable store that is down from the start."""

    name = "redis"

    async def connect(self) -> None:
        raise CacheConnectionError("Connection refused")

    async def close(self) -> None:
        return None

    async def get(self, key: str) -> str | None:
        raise CacheConnectionError("Connection refused")

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        raise CacheConnectionError("Connection refused")

    async def delete(self, key: str) -> bool:
        raise CacheConnectionError("Connection refused")


@pytest.mark.unit
class TestResponseCacheRoundTrip:
    """Test suite for reads and writes."""

    async def test_set_then_get_returns_entry(self, response_cache):
        usage = Usage.from_counts(10, 20)

        assert await response_cache.set(FINGERPRINT, ANSWER, usage) is True
        entry = await response_cache.get(FINGERPRINT)

        assert entry is not None
        assert entry.answer == ANSWER
        assert entry.usage == usage

    async def test_miss_returns_none(self, response_cache):
        assert await response_cache.get(FINGERPRINT) is None
        assert response_cache.stats()["misses"] == 1

    async def test_short_answer_not_written(self, response_cache):
        assert await response_cache.set(FINGERPRINT, "Sí.") is False
        assert await response_cache.get(FINGERPRINT) is None
        assert response_cache.stats()["skipped_writes"] == 1

    async def test_no_cache_flag_skips_write(self, response_cache):
        assert await response_cache.set(FINGERPRINT, ANSWER, no_cache=True) is False
        assert await response_cache.get(FINGERPRINT) is None

    async def test_clear_removes_entry(self, response_cache):
        await response_cache.set(FINGERPRINT, ANSWER)
        assert await response_cache.clear(FINGERPRINT) is True
        assert await response_cache.get(FINGERPRINT) is None

    async def test_keys_are_namespaced(self, test_settings):
        backend = InMemoryCacheBackend()
        cache = ResponseCache(test_settings.cache, backend=backend, fallback=backend)

        await cache.set(FINGERPRINT, ANSWER)

        assert backend.get_keys() == [f"tutor:ai:{FINGERPRINT}"]


@pytest.mark.unit
class TestResponseCacheEntryValidity:
    """Test expired and undecodable entries."""

    async def test_expired_entry_is_a_miss(self, test_settings):
        backend = InMemoryCacheBackend()
        cache = ResponseCache(test_settings.cache, backend=backend, fallback=backend)
        stale = CacheEntry(
            answer=ANSWER,
            timestamp=datetime.now(timezone.utc) - timedelta(seconds=test_settings.CACHE_TTL_SECONDS + 1),
        )
        await backend.set(f"tutor:ai:{FINGERPRINT}", orjson.dumps(stale.model_dump(mode="json")).decode())

        assert await cache.get(FINGERPRINT) is None

    async def test_undecodable_entry_is_a_miss(self, test_settings):
        backend = InMemoryCacheBackend()
        cache = ResponseCache(test_settings.cache, backend=backend, fallback=backend)
        await backend.set(f"tutor:ai:{FINGERPRINT}", "not json")

        assert await cache.get(FINGERPRINT) is None

    def test_entry_expiry_boundary(self):
        written = datetime(2025, 1, 1, tzinfo=timezone.utc)
        entry = CacheEntry(answer=ANSWER, timestamp=written)

        assert entry.is_expired(60, now=written + timedelta(seconds=60)) is False
        assert entry.is_expired(60, now=written + timedelta(seconds=61)) is True


@pytest.mark.unit
class TestResponseCacheDegrade:
    """Test the durable -> memory degrade path."""

    def test_memory_selected_without_redis_url(self, test_settings):
        cache = ResponseCache(test_settings.cache)
        assert cache.backend_name == "memory"
        assert cache.degraded is False

    async def test_connect_failure_degrades_to_memory(self, test_settings):
        cache = ResponseCache(test_settings.cache, backend=UnreachableBackend())

        await cache.initialize()

        assert cache.backend_name == "memory"
        assert cache.degraded is True

    async def test_read_failure_degrades_and_keeps_working(self, test_settings):
        client = FakeRedisClient()
        cache = CacheTestFactory.redis_cache(test_settings, client)
        await cache.initialize()
        assert cache.backend_name == "redis"

        client.failing.update({"get", "set"})

        assert await cache.get(FINGERPRINT) is None
        assert cache.degraded is True
        assert await cache.set(FINGERPRINT, ANSWER) is True
        assert (await cache.get(FINGERPRINT)).answer == ANSWER

    async def test_degrade_is_one_way(self, test_settings):
        client = FakeRedisClient()
        cache = CacheTestFactory.redis_cache(test_settings, client)
        await cache.initialize()
        client.failing.add("get")
        await cache.get(FINGERPRINT)

        client.failing.clear()
        await cache.set(FINGERPRINT, ANSWER)

        assert cache.backend_name == "memory"
        assert client.data == {}
