"""
Stream Orchestrator (LLM Gateway)

The single entry point every tutor feature uses to talk to a vendor.

Per call:
    Idle -> Streaming -> {Succeeded | Failed | TimedOut}

┌─────────────────────────────────────────────────────────────────┐
│ STAGE 3: PROVIDER SELECTION                                     │
│ - Requested provider, then the registry default                 │
│ - Nothing resolvable: NO_PROVIDER_AVAILABLE (no streaming)      │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ STAGE 2: CACHE LOOKUP (only when a fingerprint is given)        │
│ - Hit: replay the stored answer as token chunks, End(cached)    │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ STAGE 4: LLM STREAMING                                          │
│ - One attempt = one provider stream under its own deadline      │
│ - ErrorChunk / exception -> classify_error -> LLMGatewayError   │
│ - End with no content -> EMPTY_RESPONSE                         │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ STAGE R: RETRY                                                  │
│ - tenacity AsyncRetrying, exponential backoff (1s, 2s, ...)     │
│ - Only retryable kinds, and only if the attempt forwarded no    │
│   token to the caller (no duplicated output)                    │
└─────────────────────────────────────────────────────────────────┘

Architectural Decision: retry a coroutine, not a generator
- tenacity drives a coroutine (one attempt) running in a worker task
- Tokens travel from the worker to the caller through an asyncio.Queue
- The caller's generator can therefore be closed or cancelled at any
  point without tenacity swallowing GeneratorExit/CancelledError

Writing the cache is left to the caller, which knows whether the answer
was actually delivered.

Author: System Architect
Date: 2025-12-08
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import aclosing, suppress
from dataclasses import dataclass
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from tutor_gateway.core.config.constants import (
    DEFAULT_TOP_P,
    TEMPERATURE_MAX,
    TEMPERATURE_MIN,
    ErrorKind,
)
from tutor_gateway.core.config.settings import Settings, get_settings
from tutor_gateway.core.exceptions import LLMGatewayError, NormalizedError
from tutor_gateway.core.logging.logger import get_logger, log_stage
from tutor_gateway.infrastructure.cache.response_cache import CacheEntry, ResponseCache
from tutor_gateway.llm_stream.models.stream_request import ChatMessage, StreamRequest, Usage
from tutor_gateway.llm_stream.providers.base_provider import (
    BaseProvider,
    EndChunk,
    ErrorChunk,
    TokenChunk,
)
from tutor_gateway.llm_stream.providers.registry import ProviderRegistry
from tutor_gateway.llm_stream.services.error_taxonomy import classify_error

logger = get_logger(__name__)

# tenacity reports through the standard library logger
retry_logger = logging.getLogger(__name__)

Emit = Callable[[TokenChunk], None]


def clamp_temperature(value: float) -> float:
    return min(max(value, TEMPERATURE_MIN), TEMPERATURE_MAX)


# ============================================================================
# Call / result value objects
# ============================================================================


@dataclass(frozen=True)
class GatewayCall:
    """
    One gateway invocation.

    Attributes:
        messages: Conversation ending with the user's turn
        system_prompt: Instructions for the model
        provider_name: Requested provider (None selects the default)
        temperature: Clamped to [0.2, 0.5]; None uses AI_TEMPERATURE
        top_p: Nucleus sampling
        max_tokens: Output cap (None uses the provider's configured cap)
        max_retries: Retries after the first attempt (None uses GATEWAY_MAX_RETRIES)
        fingerprint: Cache key; enables cache replay when set
    """

    messages: tuple[ChatMessage, ...]
    system_prompt: str | None = None
    provider_name: str | None = None
    temperature: float | None = None
    top_p: float = DEFAULT_TOP_P
    max_tokens: int | None = None
    max_retries: int | None = None
    fingerprint: str | None = None

    @classmethod
    def from_prompt(cls, user_prompt: str, system_prompt: str | None = None, **kwargs: Any) -> "GatewayCall":
        """Single-turn call built from one user prompt."""
        return cls(
            messages=(ChatMessage(role="user", content=user_prompt),),
            system_prompt=system_prompt,
            **kwargs,
        )


@dataclass(frozen=True)
class GatewayResult:
    """Buffered outcome of a successful call."""

    text: str
    usage: Usage
    provider_name: str
    message_id: str
    cached: bool = False


@dataclass
class _AttemptState:
    """Mutable bookkeeping shared by the attempts of one call."""

    attempt: int = 0
    forwarded: int = 0


@dataclass(frozen=True)
class _AttemptOutcome:
    text: str
    usage: Usage
    message_id: str


# ============================================================================
# Orchestrator
# ============================================================================


class StreamOrchestrator:
    """
    Retry/backoff, deadline and cache-replay layer over the provider registry.

    Usage:
        orchestrator = StreamOrchestrator(registry, cache, settings)

        async with aclosing(orchestrator.stream(call, cancel_event)) as chunks:
            async for chunk in chunks:
                ...

        result = await orchestrator.complete(call)
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: ResponseCache,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            registry: Configured provider registry
            cache: Response cache used for replay
            settings: Application settings (get_settings() when omitted)
            sleep: Backoff sleep; tests inject a recorder
        """
        settings = settings or get_settings()
        self._registry = registry
        self._cache = cache
        self._gateway = settings.gateway
        self._cache_settings = settings.cache
        self._default_temperature = settings.AI_TEMPERATURE
        self._sleep = sleep

        self._active_streams = 0
        self._stats = {
            "calls": 0,
            "succeeded": 0,
            "failed": 0,
            "cache_replays": 0,
            "retries": 0,
            "aborted": 0,
        }

        logger.info(
            "StreamOrchestrator initialized",
            stage="0.3",
            providers=sorted(registry.list_available()),
            timeout_seconds=self._gateway.GATEWAY_TIMEOUT_SECONDS,
            max_retries=self._gateway.GATEWAY_MAX_RETRIES,
        )

    # ------------------------------------------------------------------------
    # Provider selection
    # ------------------------------------------------------------------------

    def resolve_provider(self, name: str | None = None) -> BaseProvider:
        """
        Requested provider, then the registry default.

        STAGE-3.1: Provider selection

        Raises:
            LLMGatewayError: NO_PROVIDER_AVAILABLE (503, non-retryable)
        """
        provider = self._registry.resolve(name) if name else None
        if provider is None and name:
            logger.warning("Requested provider not available, using default", stage="3.1", requested=name)
        provider = provider or self._registry.get_default()

        if provider is None:
            raise LLMGatewayError(
                NormalizedError(
                    kind=ErrorKind.NO_PROVIDER_AVAILABLE,
                    message="No LLM provider is configured",
                    http_status=503,
                    retryable=False,
                ),
                provider=name,
            )
        return provider

    # ------------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------------

    async def stream(
        self,
        call: GatewayCall,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncGenerator[TokenChunk | EndChunk, None]:
        """
        Stream a completion with tokens forwarded live.

        STAGE-4: LLM streaming

        Yields:
            TokenChunk* then exactly one EndChunk. When ``cancel_event`` is
            set (or the generator is closed) forwarding stops at once, the
            in-flight attempt is cancelled and no EndChunk is produced.

        Raises:
            LLMGatewayError: Classified failure once retries are exhausted
        """
        provider = self.resolve_provider(call.provider_name)
        self._stats["calls"] += 1
        self._active_streams += 1

        try:
            entry = await self._cached_entry(call)
            if entry is not None:
                async for chunk in self._replay(entry, call.fingerprint, cancel_event):
                    yield chunk
                return

            request = self._build_request(call)
            queue: asyncio.Queue = asyncio.Queue()
            worker = asyncio.create_task(self._produce(provider, request, call, queue))

            try:
                while True:
                    item = await self._next_item(queue, cancel_event)
                    if item is None:
                        self._stats["aborted"] += 1
                        log_stage(logger, "4.9", "Stream aborted by caller", provider=provider.name)
                        return
                    if isinstance(item, LLMGatewayError):
                        self._stats["failed"] += 1
                        raise item
                    yield item
                    if isinstance(item, EndChunk):
                        self._stats["succeeded"] += 1
                        return
            finally:
                if not worker.done():
                    worker.cancel()
                    with suppress(asyncio.CancelledError):
                        await worker
        finally:
            self._active_streams -= 1

    async def complete(self, call: GatewayCall) -> GatewayResult:
        """
        Buffered variant of stream() with the same retry semantics.

        Raises:
            LLMGatewayError: Classified failure once retries are exhausted
        """
        provider = self.resolve_provider(call.provider_name)
        self._stats["calls"] += 1

        entry = await self._cached_entry(call)
        if entry is not None:
            self._stats["cache_replays"] += 1
            return GatewayResult(
                text=entry.answer,
                usage=entry.usage or Usage(),
                provider_name=provider.name,
                message_id=self._cached_message_id(call.fingerprint),
                cached=True,
            )

        try:
            outcome = await self._run_attempts(provider, self._build_request(call), call, emit=None)
        except LLMGatewayError:
            self._stats["failed"] += 1
            raise

        self._stats["succeeded"] += 1
        return GatewayResult(
            text=outcome.text,
            usage=outcome.usage,
            provider_name=provider.name,
            message_id=outcome.message_id,
        )

    @property
    def active_streams(self) -> int:
        return self._active_streams

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "active_streams": self._active_streams,
            "providers": sorted(self._registry.list_available()),
            "default_provider": self._registry.default_name,
        }

    # ------------------------------------------------------------------------
    # Attempt loop
    # ------------------------------------------------------------------------

    def _build_request(self, call: GatewayCall) -> StreamRequest:
        temperature = call.temperature if call.temperature is not None else self._default_temperature
        return StreamRequest(
            messages=call.messages,
            system_prompt=call.system_prompt,
            temperature=clamp_temperature(temperature),
            top_p=call.top_p,
            max_tokens=call.max_tokens,
        )

    def _retrying(self, max_retries: int) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_exponential(multiplier=self._gateway.GATEWAY_BACKOFF_BASE_SECONDS, exp_base=2),
            retry=retry_if_exception(self._should_retry),
            sleep=self._sleep,
            before_sleep=before_sleep_log(retry_logger, logging.WARNING),
            reraise=True,
        )

    @staticmethod
    def _should_retry(exc: BaseException) -> bool:
        """Retryable kinds only, and never once tokens reached the caller."""
        return (
            isinstance(exc, LLMGatewayError)
            and exc.retryable
            and not exc.details.get("partial", False)
        )

    async def _run_attempts(
        self,
        provider: BaseProvider,
        request: StreamRequest,
        call: GatewayCall,
        emit: Emit | None,
    ) -> _AttemptOutcome:
        """
        Run attempts until success, a non-retryable error or the budget ends.

        STAGE-R.1: Retry loop
        """
        max_retries = call.max_retries if call.max_retries is not None else self._gateway.GATEWAY_MAX_RETRIES
        state = _AttemptState()

        try:
            return await self._retrying(max(max_retries, 0))(self._attempt, provider, request, emit, state)
        except RetryError as e:
            raise LLMGatewayError(
                NormalizedError(
                    kind=ErrorKind.MAX_RETRIES_EXCEEDED,
                    message=f"Retry budget exhausted after {state.attempt} attempts",
                    http_status=500,
                    retryable=False,
                ),
                provider=provider.name,
                details={"attempts": state.attempt},
            ) from e
        finally:
            self._stats["retries"] += max(state.attempt - 1, 0)

    async def _attempt(
        self,
        provider: BaseProvider,
        request: StreamRequest,
        emit: Emit | None,
        state: _AttemptState,
    ) -> _AttemptOutcome:
        """
        One provider stream under its own wall-clock deadline.

        STAGE-4.2: Provider attempt
        """
        state.attempt += 1
        state.forwarded = 0
        timeout = self._gateway.GATEWAY_TIMEOUT_SECONDS

        def forward(chunk: TokenChunk) -> None:
            # Buffered calls deliver nothing until success, so they stay retryable
            if emit is not None:
                state.forwarded += 1
                emit(chunk)

        log_stage(logger, "4.2", "Provider attempt started", provider=provider.name, attempt=state.attempt)

        try:
            return await asyncio.wait_for(self._consume(provider, request, forward), timeout=timeout)
        except asyncio.TimeoutError as e:
            error = LLMGatewayError(
                NormalizedError(
                    kind=ErrorKind.TIMEOUT,
                    message=f"No terminal chunk within {timeout:g}s",
                    http_status=408,
                    retryable=True,
                ),
                provider=provider.name,
            )
            raise self._annotate(error, state) from e
        except LLMGatewayError as e:
            raise self._annotate(e, state)
        except Exception as e:
            error = LLMGatewayError(classify_error(e, provider.name), provider=provider.name)
            raise self._annotate(error, state) from e

    async def _consume(self, provider: BaseProvider, request: StreamRequest, forward: Emit) -> _AttemptOutcome:
        """Drain one provider stream, forwarding tokens as they arrive."""
        parts: list[str] = []

        async with aclosing(provider.stream(request)) as chunks:
            async for chunk in chunks:
                if isinstance(chunk, TokenChunk):
                    parts.append(chunk.delta)
                    forward(chunk)
                elif isinstance(chunk, ErrorChunk):
                    raise LLMGatewayError(classify_error(chunk, provider.name), provider=provider.name)
                elif isinstance(chunk, EndChunk):
                    text = "".join(parts)
                    if not text.strip():
                        raise LLMGatewayError(
                            NormalizedError(
                                kind=ErrorKind.EMPTY_RESPONSE,
                                message="Provider finished without producing content",
                                http_status=500,
                                retryable=True,
                            ),
                            provider=provider.name,
                        )
                    return _AttemptOutcome(text=text, usage=chunk.usage, message_id=chunk.message_id)

        # BaseProvider guarantees a terminal chunk; a bare adapter may not
        raise LLMGatewayError(
            NormalizedError(
                kind=ErrorKind.PROVIDER_ERROR,
                message="Provider stream ended without a terminal chunk",
                http_status=502,
                retryable=True,
            ),
            provider=provider.name,
        )

    @staticmethod
    def _annotate(error: LLMGatewayError, state: _AttemptState) -> LLMGatewayError:
        error.with_context(attempt=state.attempt, partial=state.forwarded > 0)
        logger.warning(
            "Provider attempt failed",
            stage="4.2",
            provider=error.provider,
            attempt=state.attempt,
            kind=error.kind.value,
            retryable=error.retryable,
            partial=state.forwarded > 0,
            error=error.message,
        )
        return error

    # ------------------------------------------------------------------------
    # Live streaming bridge
    # ------------------------------------------------------------------------

    async def _produce(
        self,
        provider: BaseProvider,
        request: StreamRequest,
        call: GatewayCall,
        queue: asyncio.Queue,
    ) -> None:
        """Worker task: run the attempt loop and push its results onto the queue."""
        try:
            outcome = await self._run_attempts(provider, request, call, emit=queue.put_nowait)
        except LLMGatewayError as e:
            queue.put_nowait(e)
        except Exception as e:
            queue.put_nowait(LLMGatewayError(classify_error(e, provider.name), provider=provider.name))
        else:
            queue.put_nowait(EndChunk(message_id=outcome.message_id, usage=outcome.usage))

    @staticmethod
    async def _next_item(queue: asyncio.Queue, cancel_event: asyncio.Event | None) -> Any:
        """Next queued item, or None as soon as the caller cancels."""
        if cancel_event is None:
            return await queue.get()
        if cancel_event.is_set():
            return None

        getter = asyncio.ensure_future(queue.get())
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({getter, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (getter, waiter):
                if not task.done():
                    task.cancel()

        if cancel_event.is_set():
            return None
        return getter.result()

    # ------------------------------------------------------------------------
    # Cache replay
    # ------------------------------------------------------------------------

    async def _cached_entry(self, call: GatewayCall) -> CacheEntry | None:
        if not call.fingerprint:
            return None
        return await self._cache.get(call.fingerprint)

    async def _replay(
        self,
        entry: CacheEntry,
        fingerprint: str | None,
        cancel_event: asyncio.Event | None,
    ) -> AsyncGenerator[TokenChunk | EndChunk, None]:
        """
        Re-emit a cached answer as fixed-size token chunks.

        STAGE-2.2: Cache replay
        """
        size = self._cache_settings.CACHE_REPLAY_CHUNK_SIZE
        delay = self._cache_settings.CACHE_REPLAY_DELAY_MS / 1000
        self._stats["cache_replays"] += 1
        log_stage(logger, "2.2", "Replaying cached answer", fingerprint=fingerprint, length=len(entry.answer))

        for offset in range(0, len(entry.answer), size):
            if cancel_event is not None and cancel_event.is_set():
                self._stats["aborted"] += 1
                return
            if offset and delay:
                await self._sleep(delay)
            yield TokenChunk(delta=entry.answer[offset : offset + size])

        if cancel_event is not None and cancel_event.is_set():
            self._stats["aborted"] += 1
            return
        self._stats["succeeded"] += 1
        yield EndChunk(
            message_id=self._cached_message_id(fingerprint),
            usage=entry.usage or Usage(),
            cached=True,
        )

    @staticmethod
    def _cached_message_id(fingerprint: str | None) -> str:
        return f"cache_{(fingerprint or '')[:16]}"
