"""
Topic Expansion Service

Buffered "expand this topic" flow: build the prompt from the learner's
reading position, call the gateway in non-streaming mode, and parse the
vendor's JSON answer into the same TopicExpansion shape the deterministic
fallback produces.

Author: System Architect
Date: 2025-12-09
"""

import re
from dataclasses import dataclass, field
from typing import Any

import orjson

from tutor_gateway.core.config.constants import (
    FALLBACK_ERROR_KINDS,
    MAX_INTERNAL_LINKS,
    MAX_LLM_KEY_POINTS,
    MAX_PLAIN_TEXT_CHARS,
    MAX_REFERENCES,
    MAX_RESPONSE_CHARS,
)
from tutor_gateway.core.exceptions import LLMGatewayError
from tutor_gateway.core.logging.logger import get_logger, log_stage
from tutor_gateway.llm_stream.models.topic import (
    ExpandTopicRequest,
    InternalLink,
    TopicExpansion,
)
from tutor_gateway.llm_stream.services.deterministic_fallback import generate_fallback_expansion
from tutor_gateway.llm_stream.services.prompts import EXPAND_TOPIC_SYSTEM_PROMPT, build_expand_user_prompt
from tutor_gateway.llm_stream.services.stream_orchestrator import GatewayCall, StreamOrchestrator
from tutor_gateway.llm_stream.services.text_sanitizer import sanitize_text, truncate_at_boundary

logger = get_logger(__name__)

EXPLANATION_KEYS = ("expandedExplanation", "explicacion", "explanation", "text", "content")
KEY_POINT_KEYS = ("keyPoints", "puntosClave")
REFERENCE_KEYS = ("furtherReading", "suggestedReferences", "lecturasAdicionales")
LINK_KEYS = ("internalLinks",)

_JSON_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


# ============================================================================
# Response parsing
# ============================================================================


@dataclass
class ParsedExpansion:
    explanation: str
    key_points: list[str] = field(default_factory=list)
    references: list[str] = field(default_factory=list)
    links: list[InternalLink] = field(default_factory=list)


def _first(payload: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = payload.get(key)
        if value:
            return value
    return None


def _extract_json_object(text: str) -> dict[str, Any] | None:
    """JSON object from a fenced block, or the outermost braces of the text."""
    candidates = [m.group(1) for m in _JSON_FENCE.finditer(text)]
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            payload = orjson.loads(candidate.strip())
        except orjson.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            return payload
    return None


def _as_strings(value: Any, limit: int) -> list[str]:
    if not isinstance(value, list):
        return []
    items: list[str] = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("title") or item.get("label") or ""
        text = sanitize_text(str(item))
        if text:
            items.append(text)
    return items[:limit]


def _as_links(value: Any) -> list[InternalLink]:
    if not isinstance(value, list):
        return []
    links: list[InternalLink] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        title = sanitize_text(str(item.get("title") or item.get("label") or ""))
        url = sanitize_text(str(item.get("route") or item.get("url") or item.get("path") or ""))
        if title and url:
            links.append(
                InternalLink(title=title, url=url, description=sanitize_text(str(item.get("description") or "")))
            )
    return links[:MAX_INTERNAL_LINKS]


def parse_llm_response(text: str) -> ParsedExpansion:
    """
    Parse a vendor answer into the structured expansion fields.

    Accepts a bare JSON object or one inside a ```json fence, with
    English or Spanish field names. Anything else is treated as plain
    explanation text.
    """
    payload = _extract_json_object(text)
    if payload is None:
        return ParsedExpansion(explanation=truncate_at_boundary(sanitize_text(text), MAX_PLAIN_TEXT_CHARS))

    explanation = _first(payload, EXPLANATION_KEYS)
    return ParsedExpansion(
        explanation=sanitize_text(explanation if isinstance(explanation, str) else ""),
        key_points=_as_strings(_first(payload, KEY_POINT_KEYS), MAX_LLM_KEY_POINTS),
        references=_as_strings(_first(payload, REFERENCE_KEYS), MAX_REFERENCES),
        links=_as_links(_first(payload, LINK_KEYS)),
    )


# ============================================================================
# Service
# ============================================================================


class TopicExpansionService:
    """
    Expand a lesson topic with the configured LLM, deterministically when none can answer.

    Usage:
        service = TopicExpansionService(orchestrator)
        expansion = await service.expand(ExpandTopicRequest(context=ctx, question="..."))
    """

    def __init__(self, orchestrator: StreamOrchestrator):
        self._orchestrator = orchestrator

    async def expand(self, request: ExpandTopicRequest) -> TopicExpansion:
        """
        STAGE-4.5: Topic expansion

        Raises:
            LLMGatewayError: Any classified failure other than
                NO_PROVIDER_AVAILABLE and EMPTY_RESPONSE
        """
        context = request.context
        call = GatewayCall.from_prompt(
            build_expand_user_prompt(context, request.question),
            system_prompt=EXPAND_TOPIC_SYSTEM_PROMPT,
            provider_name=request.provider_name,
        )

        try:
            result = await self._orchestrator.complete(call)
        except LLMGatewayError as e:
            if e.kind not in FALLBACK_ERROR_KINDS:
                raise
            log_stage(logger, "5.0", "Expanding topic deterministically", lesson_id=context.lesson_id, kind=e.kind.value)
            return generate_fallback_expansion(context, request.question)

        parsed = parse_llm_response(result.text)
        if not parsed.explanation.strip():
            logger.warning(
                "LLM answer had no usable explanation, expanding deterministically",
                stage="5.0",
                lesson_id=context.lesson_id,
                provider=result.provider_name,
            )
            return generate_fallback_expansion(context, request.question)

        return TopicExpansion(
            expanded_explanation=truncate_at_boundary(parsed.explanation, MAX_RESPONSE_CHARS),
            key_points=parsed.key_points,
            suggested_references=parsed.references,
            internal_links=parsed.links,
            source="llm",
            provider=result.provider_name,
        )
