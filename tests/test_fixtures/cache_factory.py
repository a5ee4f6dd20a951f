"""
Cache Test Factory

Creates response caches and an in-process Redis stand-in for testing.
"""

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from tutor_gateway.core.config.settings import Settings
from tutor_gateway.infrastructure.cache.memory_cache import InMemoryCacheBackend
from tutor_gateway.infrastructure.cache.redis_client import RedisCacheBackend
from tutor_gateway.infrastructure.cache.response_cache import ResponseCache


class FakeRedisClient:
    """
    Minimal async client with the redis.asyncio.Redis surface the backend uses.

    Operations listed in ``failing`` raise a redis-py error; ``ping`` raises
    a connection error, everything else a generic RedisError.
    """

    def __init__(self, initial_data: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial_data or {})
        self.ttls: dict[str, int | None] = {}
        self.failing: set[str] = set()
        self.closed = False

    def _check(self, operation: str) -> None:
        if operation in self.failing:
            if operation == "ping":
                raise RedisConnectionError("Connection refused")
            raise RedisError(f"{operation} failed")

    async def ping(self) -> bool:
        self._check("ping")
        return True

    async def get(self, key: str) -> str | None:
        self._check("get")
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check("set")
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, key: str) -> int:
        self._check("delete")
        return 1 if self.data.pop(key, None) is not None else 0

    async def aclose(self) -> None:
        self.closed = True


class CacheTestFactory:
    """Factory for creating cache test objects."""

    @staticmethod
    def memory_cache(settings: Settings, clock=None) -> ResponseCache:
        cache_settings = settings.cache
        backend = (
            InMemoryCacheBackend(max_size=cache_settings.CACHE_MEMORY_MAX_SIZE, clock=clock)
            if clock
            else None
        )
        return ResponseCache(cache_settings, backend=backend, fallback=backend)

    @staticmethod
    def redis_cache(settings: Settings, client: FakeRedisClient) -> ResponseCache:
        """Response cache whose durable store talks to ``client``."""
        cache_settings = settings.cache
        return ResponseCache(cache_settings, backend=RedisCacheBackend(cache_settings, client=client))
