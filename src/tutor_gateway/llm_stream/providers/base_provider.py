#!/usr/bin/env python3
"""
Base Provider Abstract Class

This module defines the abstract base class for all LLM providers and the
canonical chunk types they produce. Concrete adapters (OpenAI, Anthropic,
Gemini) inherit from this class and only translate their wire protocol.

Architectural Decision: One lazy chunk sequence for every vendor
- Adapters differ internally (incremental SSE parse vs. buffer-then-emit)
- Externally every adapter yields TokenChunk* then one EndChunk or ErrorChunk
- Nothing is produced after a terminal chunk
- One automatic model fallback on 404 before an error is surfaced

Author: Senior Solution Architect
Date: 2025-12-05
"""

import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any

import httpx
import orjson

from tutor_gateway.core.exceptions import ConfigurationError
from tutor_gateway.core.logging.logger import get_logger
from tutor_gateway.llm_stream.models.stream_request import StreamRequest, Usage

logger = get_logger(__name__)


# ============================================================================
# Canonical chunk types
# ============================================================================


@dataclass(frozen=True)
class TokenChunk:
    """A piece of generated text."""

    delta: str


@dataclass(frozen=True)
class EndChunk:
    """
    Terminal success chunk.

    Attributes:
        message_id: Vendor message id (generated when the vendor sends none)
        usage: Best-effort token totals
        cached: True when the stream was replayed from the response cache
    """

    message_id: str
    usage: Usage = field(default_factory=Usage)
    cached: bool = False


@dataclass(frozen=True)
class ErrorChunk:
    """
    Terminal failure chunk.

    Attributes:
        message: Vendor error text, or "HTTP {status}" when none could be read
        status: HTTP status of the failed response, if any
    """

    message: str
    status: int | None = None


StreamChunk = TokenChunk | EndChunk | ErrorChunk


def is_terminal(chunk: StreamChunk) -> bool:
    return isinstance(chunk, EndChunk | ErrorChunk)


@dataclass(frozen=True)
class ProviderIdentity:
    """Immutable description of one configured vendor."""

    name: str
    display_model: str
    base_endpoint: str


@dataclass
class ProviderConfig:
    """
    Configuration for an LLM provider.

    Attributes:
        name: Canonical provider name
        api_key: API key for authentication
        base_url: Base URL for API
        default_model: Model used for every request
        fallback_model: Model tried once when the default returns 404
        max_tokens: Output token cap when the request sets none
        timeout: Transport timeout in seconds (the gateway deadline is shorter)
    """

    name: str
    api_key: str
    base_url: str
    default_model: str
    fallback_model: str | None = None
    max_tokens: int = 2048
    timeout: float = 60.0


@dataclass(frozen=True)
class SSEFrame:
    event: str | None
    data: str


class BaseProvider(ABC):
    """
    Abstract base class for LLM providers.

    STAGE-4: LLM provider base class

    Subclasses must implement:
    - _stream_internal(): open the vendor stream for one model and yield chunks

    Usage:
        class OpenAIProvider(BaseProvider):
            async def _stream_internal(self, request, model):
                ...
    """

    def __init__(self, config: ProviderConfig, http_client: httpx.AsyncClient | None = None):
        """
        Initialize base provider.

        STAGE-4.0: Provider initialization

        Args:
            config: Provider configuration
            http_client: Shared client (tests inject one with a MockTransport)

        Raises:
            ConfigurationError: If the API key or default model is missing
        """
        if not config.api_key or not config.default_model:
            raise ConfigurationError(
                f"Provider {config.name!r} requires an API key and a default model",
                details={"provider": config.name},
            )
        self.config = config
        self.name = config.name
        self.identity = ProviderIdentity(
            name=config.name,
            display_model=config.default_model,
            base_endpoint=config.base_url,
        )
        self._client = http_client
        self._owns_client = http_client is None

        logger.info(
            "Provider initialized",
            stage="4.0",
            provider=config.name,
            model=config.default_model,
            base_url=config.base_url,
        )

    # ------------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------------

    async def stream(self, request: StreamRequest) -> AsyncGenerator[StreamChunk, None]:
        """
        Stream a completion as canonical chunks.

        STAGE-4.1: Provider streaming

        The sequence always ends with exactly one EndChunk or ErrorChunk.
        A 404 before any token triggers one retry with the fallback model.
        Transport exceptions (httpx.HTTPError) propagate to the caller.
        """
        model = self.config.default_model
        logger.info(
            "Starting stream",
            stage="4.1",
            provider=self.name,
            model=model,
            message_count=len(request.messages),
        )

        use_fallback = False
        emitted_tokens = False
        async with aclosing(self._stream_model(request, model)) as chunks:
            async for chunk in chunks:
                if (
                    isinstance(chunk, ErrorChunk)
                    and chunk.status == 404
                    and not emitted_tokens
                    and self._has_fallback_for(model)
                ):
                    use_fallback = True
                    break
                if isinstance(chunk, TokenChunk):
                    emitted_tokens = True
                yield chunk

        if use_fallback:
            fallback = self.config.fallback_model
            logger.warning(
                "Model not found, retrying once with fallback model",
                stage="4.2",
                provider=self.name,
                model=model,
                fallback_model=fallback,
            )
            async with aclosing(self._stream_model(request, fallback)) as chunks:
                async for chunk in chunks:
                    yield chunk

    async def aclose(self) -> None:
        """Release the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.identity.name,
            "model": self.identity.display_model,
            "fallback_model": self.config.fallback_model,
            "endpoint": self.identity.base_endpoint,
        }

    # ------------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------------

    @abstractmethod
    def _stream_internal(self, request: StreamRequest, model: str) -> AsyncGenerator[StreamChunk, None]:
        """
        Provider-specific streaming for one model.

        STAGE-4.3: Provider-specific streaming
        """

    # ------------------------------------------------------------------------
    # Shared helpers for adapters
    # ------------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.config.timeout))
            self._owns_client = True
        return self._client

    def _has_fallback_for(self, model: str) -> bool:
        return bool(self.config.fallback_model) and self.config.fallback_model != model

    async def _stream_model(self, request: StreamRequest, model: str) -> AsyncGenerator[StreamChunk, None]:
        """Run one adapter stream and stop at the first terminal chunk."""
        async with aclosing(self._stream_internal(request, model)) as chunks:
            async for chunk in chunks:
                yield chunk
                if is_terminal(chunk):
                    return

        logger.warning("Stream ended without a terminal frame", stage="4.3", provider=self.name, model=model)
        yield EndChunk(message_id=self._new_message_id())

    async def _error_chunk(self, response: httpx.Response) -> ErrorChunk:
        """Build the single ErrorChunk for a non-2xx response."""
        body = await response.aread()
        message = self._extract_error_message(self._parse_json(body))
        logger.warning(
            "Provider returned error status",
            stage="4.3",
            provider=self.name,
            status=response.status_code,
            error=message,
        )
        return ErrorChunk(message=message or f"HTTP {response.status_code}", status=response.status_code)

    def _extract_error_message(self, payload: Any) -> str | None:
        """
        Find the error text in a vendor error body.

        Handles {"error": {"message": ...}}, {"error": "..."}, {"message": ...}
        and list-wrapped variants of these.
        """
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        if not isinstance(payload, dict):
            return None

        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if message:
                return str(message)
        elif isinstance(error, str) and error:
            return error

        message = payload.get("message")
        return str(message) if message else None

    @staticmethod
    def _parse_json(raw: str | bytes) -> Any:
        """Parse vendor JSON; None when the text is not JSON."""
        if not raw:
            return None
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError:
            return None

    @staticmethod
    async def _iter_sse(response: httpx.Response) -> AsyncGenerator[SSEFrame, None]:
        """
        Split an event-stream body into frames.

        Data lines are joined until a blank line dispatches the frame.
        Comment lines (":") and unknown fields are ignored.
        """
        event: str | None = None
        data_lines: list[str] = []

        async for line in response.aiter_lines():
            if not line:
                if data_lines:
                    yield SSEFrame(event=event, data="\n".join(data_lines))
                event, data_lines = None, []
                continue
            if line.startswith(":"):
                continue
            name, _, value = line.partition(":")
            value = value[1:] if value.startswith(" ") else value
            if name == "event":
                event = value
            elif name == "data":
                data_lines.append(value)

        if data_lines:
            yield SSEFrame(event=event, data="\n".join(data_lines))

    @staticmethod
    def _new_message_id() -> str:
        return f"msg_{uuid.uuid4().hex}"
