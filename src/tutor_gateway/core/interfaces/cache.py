"""
Cache Backend Protocol

This module defines the protocol every response-cache backend implements.
The response cache picks one backend at construction time and never
branches on the backend type afterwards.

Architectural Decision: Protocol-based abstraction
- Two implementations: Redis (durable) and bounded in-memory LRU
- Facilitates testing with fake implementations
- Type-safe interface with runtime checking

Author: System Architect
Date: 2025-12-08
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CacheBackend(Protocol):
    """
    Protocol defining the interface for cache backend implementations.

    Values are opaque strings (serialized cache entries). Backends own
    expiry: ``set`` receives the TTL and ``get`` must never return an
    expired value.

    Implementations:
    - RedisCacheBackend: Durable Redis-backed store
    - InMemoryCacheBackend: Bounded LRU fallback store
    """

    name: str

    async def connect(self) -> None:
        """
        Establish connection to the backend.

        Raises:
            CacheConnectionError: If connection fails
        """
        ...

    async def close(self) -> None:
        """Flush and release the backend."""
        ...

    async def get(self, key: str) -> str | None:
        """
        Get value from cache.

        Raises:
            CacheKeyError: If operation fails
        """
        ...

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """
        Set value in cache, overwriting any previous value.

        Raises:
            CacheKeyError: If operation fails
        """
        ...

    async def delete(self, key: str) -> bool:
        """
        Delete a key from cache.

        Raises:
            CacheKeyError: If operation fails
        """
        ...
