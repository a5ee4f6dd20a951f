"""
LLM Gateway Exceptions

The gateway never lets raw vendor or transport exceptions escape. Every
failure is reduced to a NormalizedError value and raised wrapped in a
single exception type, LLMGatewayError. Callers branch on
``exc.error.kind``, not on exception subclasses.

Author: System Architect
Date: 2025-12-08
"""

from dataclasses import dataclass
from typing import Any

from tutor_gateway.core.config.constants import ErrorKind
from tutor_gateway.core.exceptions.base import GatewayBaseError


@dataclass(frozen=True)
class NormalizedError:
    """
    Classified provider failure.

    Attributes:
        kind: Taxonomy entry
        message: Human readable message (vendor text when available)
        http_status: HTTP status equivalent for upstream mapping
        retryable: Whether the gateway may retry the call
    """

    kind: ErrorKind
    message: str
    http_status: int
    retryable: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.kind.value,
            "message": self.message,
            "http_status": self.http_status,
            "retryable": self.retryable,
        }


class LLMGatewayError(GatewayBaseError):
    """
    Raised by the stream orchestrator for any classified failure.

    Example:
        try:
            result = await orchestrator.complete(call)
        except LLMGatewayError as exc:
            if exc.kind in FALLBACK_ERROR_KINDS:
                ...
    """

    def __init__(
        self,
        error: NormalizedError,
        provider: str | None = None,
        request_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.error = error
        self.provider = provider
        super().__init__(error.message, request_id=request_id, details=details)

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def retryable(self) -> bool:
        return self.error.retryable

    @property
    def http_status(self) -> int:
        return self.error.http_status

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload.update(self.error.to_dict())
        payload["provider"] = self.provider
        return payload
