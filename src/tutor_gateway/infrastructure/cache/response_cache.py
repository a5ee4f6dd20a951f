#!/usr/bin/env python3
"""
Look-Aside Response Cache

Architecture:
    ResponseCache (Public API)
        ├── CacheBackend (selected once at construction)
        │   ├── RedisCacheBackend (durable, preferred)
        │   └── InMemoryCacheBackend (bounded LRU fallback)
        └── Degrade path (one-way switch to in-memory on store failure)

Callers look entries up by fingerprint before calling a provider and write
them after a successful completion. Writes are idempotent overwrites, so
concurrent writers for the same fingerprint need no locking.

Author: System Architect
Date: 2025-12-13
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import orjson
from pydantic import BaseModel, Field, ValidationError

from tutor_gateway.core.config.settings import CacheSettings
from tutor_gateway.core.exceptions import CacheError
from tutor_gateway.core.interfaces.cache import CacheBackend
from tutor_gateway.core.logging.logger import get_logger, log_stage
from tutor_gateway.infrastructure.cache.memory_cache import InMemoryCacheBackend
from tutor_gateway.infrastructure.cache.redis_client import RedisCacheBackend
from tutor_gateway.llm_stream.models.stream_request import Usage

logger = get_logger(__name__)


class CacheEntry(BaseModel):
    """A cached answer. Read-only once written."""

    model_config = {"frozen": True}

    answer: str
    usage: Usage | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    no_cache: bool = False

    def is_expired(self, ttl_seconds: int, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now - self.timestamp > timedelta(seconds=ttl_seconds)


class ResponseCache:
    """
    Response cache with a one-way durable→memory degrade path.

    Usage:
        cache = ResponseCache(settings.cache)
        await cache.initialize()

        entry = await cache.get(fingerprint)
        if entry is None:
            ...
            await cache.set(fingerprint, answer, usage)

    Failures from the durable store are never raised to callers. The first
    one switches this instance to the in-memory store for the rest of the
    process lifetime; there is no re-check per call.
    """

    def __init__(
        self,
        settings: CacheSettings,
        backend: CacheBackend | None = None,
        fallback: InMemoryCacheBackend | None = None,
    ):
        self._settings = settings
        self._fallback = fallback or InMemoryCacheBackend(max_size=settings.CACHE_MEMORY_MAX_SIZE)

        if backend is None:
            backend = RedisCacheBackend(settings) if settings.CACHE_REDIS_URL else self._fallback
        self._primary: CacheBackend = backend
        self._backend: CacheBackend = backend
        self._degraded = False

        self._stats = {"hits": 0, "misses": 0, "writes": 0, "skipped_writes": 0}

        logger.info("Response cache created", stage="C.0", backend=self._backend.name)

    # ------------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Connect the selected backend.

        STAGE-C.1: Called once at application startup.
        """
        try:
            await self._backend.connect()
        except CacheError as e:
            self._degrade(e, operation="connect")

    async def close(self) -> None:
        """
        Flush and disconnect.

        STAGE-C.9: Called once at application shutdown.
        """
        try:
            await self._primary.close()
        except CacheError as e:
            logger.warning("Cache close failed", stage="C.9", backend=self._primary.name, error=str(e))
        if self._fallback is not self._primary:
            await self._fallback.close()

    # ------------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------------

    async def get(self, fingerprint: str) -> CacheEntry | None:
        """
        Look up a cached answer.

        STAGE-2.1: Cache lookup

        Returns:
            The entry, or None when absent, expired, undecodable or flagged no-cache
        """
        raw = await self._call("get", self._key(fingerprint))
        if raw is None:
            self._stats["misses"] += 1
            return None

        try:
            entry = CacheEntry.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as e:
            logger.warning("Discarding undecodable cache entry", stage="2.1", fingerprint=fingerprint, error=str(e))
            self._stats["misses"] += 1
            return None

        if entry.no_cache or entry.is_expired(self._settings.CACHE_TTL_SECONDS):
            self._stats["misses"] += 1
            return None

        self._stats["hits"] += 1
        log_stage(logger, "2.1", "Cache hit", fingerprint=fingerprint, backend=self._backend.name)
        return entry

    async def set(
        self,
        fingerprint: str,
        answer: str,
        usage: Usage | None = None,
        no_cache: bool = False,
    ) -> bool:
        """
        Store an answer with the configured TTL.

        STAGE-2.3: Cache population

        Returns:
            True if written, False if skipped (no-cache flag or answer too short)
        """
        if no_cache or len(answer) < self._settings.CACHE_MIN_ANSWER_LENGTH:
            self._stats["skipped_writes"] += 1
            logger.debug(
                "Cache write skipped",
                stage="2.3",
                fingerprint=fingerprint,
                no_cache=no_cache,
                answer_length=len(answer),
            )
            return False

        entry = CacheEntry(answer=answer, usage=usage)
        payload = orjson.dumps(entry.model_dump(mode="json")).decode()
        written = await self._call("set", self._key(fingerprint), payload, self._settings.CACHE_TTL_SECONDS)
        if written:
            self._stats["writes"] += 1
        return bool(written)

    async def clear(self, fingerprint: str) -> bool:
        """
        Remove one entry.

        STAGE-2.4: Cache invalidation
        """
        return bool(await self._call("delete", self._key(fingerprint)))

    @property
    def backend_name(self) -> str:
        return self._backend.name

    @property
    def degraded(self) -> bool:
        return self._degraded

    def stats(self) -> dict[str, Any]:
        return {**self._stats, "backend": self._backend.name, "degraded": self._degraded}

    # ------------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------------

    def _key(self, fingerprint: str) -> str:
        return f"{self._settings.CACHE_NAMESPACE}:{fingerprint}"

    async def _call(self, operation: str, *args: Any) -> Any:
        try:
            return await getattr(self._backend, operation)(*args)
        except CacheError as e:
            self._degrade(e, operation=operation)
            return await getattr(self._backend, operation)(*args)

    def _degrade(self, error: CacheError, operation: str) -> None:
        if self._backend is self._fallback:
            raise error
        logger.warning(
            "Durable cache unavailable, degrading to in-memory store for process lifetime",
            stage="C.2",
            backend=self._backend.name,
            operation=operation,
            error=str(error),
        )
        self._backend = self._fallback
        self._degraded = True
