"""
Redis Cache Backend with Connection Pooling

Architecture:
    RedisCacheBackend (CacheBackend implementation)
        ├── ConnectionManager (Connection lifecycle)
        └── OperationExecutor (Command execution with error handling)

The connection is acquired once at application startup and released once at
shutdown. Every redis-py failure is translated into the gateway's cache
exceptions so the response cache can degrade on a single exception family.

Author: System Architect
Date: 2025-12-13
"""

from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from tutor_gateway.core.config.settings import CacheSettings
from tutor_gateway.core.exceptions import CacheConnectionError, CacheKeyError
from tutor_gateway.core.logging.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# Handles connection lifecycle and pooling
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    Responsibility: Connection establishment, pooling, and cleanup.
    No reconnect attempts happen mid-request; a failed connection is
    reported once and the caller degrades.
    """

    def __init__(self, settings: CacheSettings, client: redis.Redis | None = None):
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = client
        self._is_connected = False

    async def connect(self) -> redis.Redis:
        """
        Establish connection to Redis with connection pooling.

        STAGE-C.1: Connection establishment

        Raises:
            CacheConnectionError: If connection fails
        """
        if self._is_connected and self._client:
            return self._client

        url = self._settings.CACHE_REDIS_URL
        try:
            if self._client is None:
                if not url:
                    raise CacheConnectionError("CACHE_REDIS_URL is not configured")
                # STAGE-C.1.1: Create connection pool
                self._pool = ConnectionPool.from_url(
                    url,
                    max_connections=self._settings.REDIS_MAX_CONNECTIONS,
                    socket_timeout=self._settings.REDIS_SOCKET_TIMEOUT,
                    socket_connect_timeout=self._settings.REDIS_SOCKET_TIMEOUT,
                    decode_responses=True,  # Return strings instead of bytes
                )
                self._client = redis.Redis(connection_pool=self._pool)

            # STAGE-C.1.2: Verify connection with ping
            await self._client.ping()
            self._is_connected = True

            logger.info("Redis connected successfully", stage="C.1", url=_redact_url(url))
            return self._client

        except (ConnectionError, TimeoutError, ValueError) as e:
            logger.error("Failed to connect to Redis", stage="C.1", error=str(e))
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {e}",
                details={"url": _redact_url(url)},
            )

    async def disconnect(self) -> None:
        """
        Close Redis connection and pool.

        STAGE-C.9: Connection cleanup
        """
        if self._client:
            await self._client.aclose()

        if self._pool:
            await self._pool.disconnect()

        self._is_connected = False
        logger.info("Redis disconnected", stage="C.9")

    def get_client(self) -> redis.Redis | None:
        return self._client

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTION
# Command execution with consistent error translation
# =============================================================================


class OperationExecutor:
    """
    Executes Redis commands and translates failures.

    Responsibility: Run a command, map RedisError to CacheKeyError.
    """

    def __init__(self, connection_manager: ConnectionManager):
        self._connection_manager = connection_manager

    async def execute(self, operation: str, key: str, *args: Any, **kwargs: Any) -> Any:
        client = self._connection_manager.get_client()
        if client is None or not self._connection_manager.is_connected():
            raise CacheConnectionError("Redis client not connected", details={"operation": operation})

        try:
            return await getattr(client, operation)(key, *args, **kwargs)
        except RedisError as e:
            logger.error(f"Redis {operation.upper()} failed", stage="C.2", key=key, error=str(e))
            raise CacheKeyError(
                message=f"Redis {operation.upper()} operation failed: {e}",
                details={"key": key, "operation": operation},
            )


# =============================================================================
# PUBLIC API
# =============================================================================


class RedisCacheBackend:
    """
    Durable response-cache store backed by Redis.

    Implements the CacheBackend protocol. Expiry is delegated to Redis
    (SET ... EX ttl).
    """

    name = "redis"

    def __init__(self, settings: CacheSettings, client: redis.Redis | None = None):
        self._connection = ConnectionManager(settings, client=client)
        self._executor = OperationExecutor(self._connection)

    async def connect(self) -> None:
        await self._connection.connect()

    async def close(self) -> None:
        await self._connection.disconnect()

    async def get(self, key: str) -> str | None:
        return await self._executor.execute("get", key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        result = await self._executor.execute("set", key, value, ex=ttl)
        return bool(result)

    async def delete(self, key: str) -> bool:
        deleted = await self._executor.execute("delete", key)
        return bool(deleted)


def _redact_url(url: str | None) -> str | None:
    """Strip credentials from a redis:// URL before logging it."""
    if not url or "@" not in url:
        return url
    scheme, _, rest = url.partition("://")
    return f"{scheme}://***@{rest.split('@', 1)[1]}"
