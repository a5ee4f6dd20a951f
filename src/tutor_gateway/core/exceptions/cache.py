"""
Cache-Related Exceptions

All exceptions related to caching operations (Redis, in-memory cache).
None of them ever reach the answer-delivery path: the response cache
logs them and degrades instead.

Author: System Architect
Date: 2025-12-08
"""

from tutor_gateway.core.exceptions.base import GatewayBaseError


class CacheError(GatewayBaseError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when unable to connect to the durable cache (Redis).

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Malformed connection URL
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a cache key operation fails.

    Common causes:
    - Operation timeout
    - Corrupted (non-decodable) entry
    """
    pass
