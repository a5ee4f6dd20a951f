"""
Error Taxonomy

Reduces any raw provider failure (an ErrorChunk, an httpx exception, or
anything else an adapter lets escape) to one NormalizedError.

Classification is an ordered list of (predicate, outcome) rules; the first
matching rule wins:

    1. Exact status codes     401 / 429 / 404
    2. Message substrings     api key, rate limit, not found, timeout ...
    3. Transport exceptions   httpx.TimeoutException, httpx.TransportError
    4. Status ranges          5xx (or no status at all), then anything else

A missing status is treated as 500, so an unexplained failure is a
retryable PROVIDER_ERROR.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from tutor_gateway.core.config.constants import ErrorKind
from tutor_gateway.core.exceptions import LLMGatewayError, NormalizedError
from tutor_gateway.core.logging.logger import get_logger
from tutor_gateway.llm_stream.providers.base_provider import ErrorChunk

logger = get_logger(__name__)

DEFAULT_STATUS = 500


@dataclass(frozen=True)
class RawError:
    """Uniform view over heterogeneous failure shapes."""

    message: str
    status: int
    exception: BaseException | None = None

    @property
    def lowered(self) -> str:
        return self.message.lower()

    def mentions(self, *markers: str) -> bool:
        text = self.lowered
        return any(marker in text for marker in markers)


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    predicate: Callable[[RawError], bool]
    kind: ErrorKind
    retryable: bool
    http_status: int | None = None  # None keeps the raw status

    def outcome(self, raw: RawError) -> NormalizedError:
        return NormalizedError(
            kind=self.kind,
            message=raw.message,
            http_status=self.http_status if self.http_status is not None else raw.status,
            retryable=self.retryable,
        )


RULES: tuple[ClassificationRule, ...] = (
    # Exact status codes
    ClassificationRule("status-401", lambda r: r.status == 401, ErrorKind.INVALID_API_KEY, False, 401),
    ClassificationRule("status-429", lambda r: r.status == 429, ErrorKind.RATE_LIMIT_EXCEEDED, True, 429),
    ClassificationRule("status-404", lambda r: r.status == 404, ErrorKind.MODEL_NOT_FOUND, False, 404),
    # Message substrings
    ClassificationRule(
        "auth-message",
        lambda r: r.mentions("api key", "api_key_invalid", "authentication"),
        ErrorKind.INVALID_API_KEY,
        False,
        401,
    ),
    ClassificationRule(
        "quota-message",
        lambda r: r.mentions("rate limit", "quota", "resource_exhausted"),
        ErrorKind.RATE_LIMIT_EXCEEDED,
        True,
        429,
    ),
    ClassificationRule(
        "not-found-message",
        lambda r: r.mentions("not found", "model_not_found"),
        ErrorKind.MODEL_NOT_FOUND,
        False,
        404,
    ),
    ClassificationRule(
        "timeout",
        lambda r: isinstance(r.exception, httpx.TimeoutException | asyncio.TimeoutError)
        or r.mentions("timeout", "timed out", "deadline_exceeded"),
        ErrorKind.TIMEOUT,
        True,
        408,
    ),
    # Transport failures (connection refused, reset, protocol errors)
    ClassificationRule(
        "transport",
        lambda r: isinstance(r.exception, httpx.TransportError),
        ErrorKind.PROVIDER_ERROR,
        True,
        502,
    ),
    # Status ranges
    ClassificationRule("status-5xx", lambda r: r.status >= 500, ErrorKind.PROVIDER_ERROR, True),
    ClassificationRule("status-4xx", lambda r: 400 <= r.status < 500, ErrorKind.CLIENT_ERROR, False),
)

UNCLASSIFIED = ClassificationRule("unclassified", lambda r: True, ErrorKind.CLIENT_ERROR, False)


def _status_of(raw: object) -> int | None:
    for attribute in ("status", "status_code"):
        value = getattr(raw, attribute, None)
        if isinstance(value, int):
            return value
    if isinstance(raw, httpx.HTTPStatusError):
        return raw.response.status_code
    return None


def describe(raw: object) -> RawError:
    """Extract message and status from any failure shape."""
    if isinstance(raw, ErrorChunk):
        return RawError(message=raw.message, status=raw.status or DEFAULT_STATUS)

    if isinstance(raw, BaseException):
        message = str(raw) or raw.__class__.__name__
        return RawError(message=message, status=_status_of(raw) or DEFAULT_STATUS, exception=raw)

    if isinstance(raw, dict):
        message = raw.get("message") or raw.get("error") or str(raw)
        status = raw.get("status") or raw.get("status_code")
        return RawError(message=str(message), status=status if isinstance(status, int) else DEFAULT_STATUS)

    return RawError(message=str(raw), status=_status_of(raw) or DEFAULT_STATUS)


def classify_error(raw: object, provider_name: str | None = None) -> NormalizedError:
    """
    Classify a raw failure.

    An LLMGatewayError is already classified and is passed through.
    """
    if isinstance(raw, LLMGatewayError):
        return raw.error

    view = describe(raw)
    rule = next((r for r in RULES if r.predicate(view)), UNCLASSIFIED)
    logger.debug(
        "Classified provider failure",
        stage="R.0",
        provider=provider_name,
        rule=rule.name,
        kind=rule.kind.value,
        status=view.status,
    )
    return rule.outcome(view)

