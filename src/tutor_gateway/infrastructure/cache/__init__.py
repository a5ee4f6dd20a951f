"""
Cache Module

Look-aside response cache with a durable Redis store and a bounded
in-memory fallback.
"""

from .memory_cache import InMemoryCacheBackend
from .redis_client import RedisCacheBackend
from .response_cache import CacheEntry, ResponseCache

__all__ = [
    "CacheEntry",
    "InMemoryCacheBackend",
    "RedisCacheBackend",
    "ResponseCache",
]
