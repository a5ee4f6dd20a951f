"""
Tutor Service

Drives one tutor conversation turn and produces the outbound event
sequence relayed to the learner:

    start -> token* -> end(usage) -> suggestions
    start -> error(message)

The shape is identical for live answers, cache replays and deterministic
fallback answers.

Architectural Decision: side effects only after a delivered answer
- The cache is written and history persisted only when a live answer
  reached its end event
- An aborted turn emits nothing further and writes nothing
- Cache and history failures never surface to the learner

Author: System Architect
Date: 2025-12-09
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import aclosing

from tutor_gateway.core.config.constants import (
    FALLBACK_ERROR_KINDS,
    MAX_USER_MESSAGE_LENGTH,
    ErrorKind,
)
from tutor_gateway.core.exceptions import InvalidInputError, LLMGatewayError
from tutor_gateway.core.interfaces.conversation import ConversationStore
from tutor_gateway.core.logging.logger import get_logger, log_stage
from tutor_gateway.infrastructure.cache.response_cache import ResponseCache
from tutor_gateway.llm_stream.models.stream_request import ChatMessage, TutorEvent, Usage
from tutor_gateway.llm_stream.models.topic import TopicContext
from tutor_gateway.llm_stream.models.tutor import TutorTurnRequest
from tutor_gateway.llm_stream.providers.base_provider import EndChunk, TokenChunk
from tutor_gateway.llm_stream.services.deterministic_fallback import generate_fallback_expansion
from tutor_gateway.llm_stream.services.fingerprint import build_fingerprint
from tutor_gateway.llm_stream.services.prompts import (
    build_tutor_system_prompt,
    generate_suggestions,
    trim_history,
)
from tutor_gateway.llm_stream.services.stream_orchestrator import GatewayCall, StreamOrchestrator

logger = get_logger(__name__)

EMPTY_MESSAGE_ERROR = "El mensaje no puede estar vacío"
MESSAGE_TOO_LONG_ERROR = f"El mensaje excede el límite de {MAX_USER_MESSAGE_LENGTH} caracteres"


class TutorService:
    """
    One tutor turn per call to stream_turn().

    Usage:
        service = TutorService(orchestrator, cache, conversation_store=store)
        async for event in service.stream_turn(request, cancel_event):
            await send(event.format())
    """

    def __init__(
        self,
        orchestrator: StreamOrchestrator,
        cache: ResponseCache,
        conversation_store: ConversationStore | None = None,
    ):
        self._orchestrator = orchestrator
        self._cache = cache
        self._store = conversation_store

    async def stream_turn(
        self,
        request: TutorTurnRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncGenerator[TutorEvent, None]:
        """
        Answer one learner message.

        STAGE-1 .. STAGE-6 for a single turn

        Args:
            request: Learner message, lesson context and prior history
            cancel_event: Set when the learner aborts; no events follow
        """
        lesson = request.lesson_context
        message = request.user_message.strip()

        # STAGE-1: Validation
        try:
            self.validate_message(message)
        except InvalidInputError as e:
            logger.info("Tutor message rejected", stage="1.2", lesson_id=lesson.lesson_id, reason=e.message)
            yield TutorEvent.start()
            yield TutorEvent.error(e.message, code="VALIDATION_ERROR")
            return

        history = trim_history(request.history)

        # STAGE-3: Provider selection
        try:
            provider = self._orchestrator.resolve_provider(request.provider_name)
        except LLMGatewayError as e:
            if e.kind is not ErrorKind.NO_PROVIDER_AVAILABLE:
                raise
            log_stage(logger, "5.0", "No provider available, answering deterministically", lesson_id=lesson.lesson_id)
            yield TutorEvent.start()
            async for event in self._fallback_events(request, message, cancel_event):
                yield event
            return

        fingerprint = build_fingerprint(message, lesson.lesson_id, provider.name)
        call = GatewayCall(
            messages=(*history, ChatMessage(role="user", content=message)),
            system_prompt=build_tutor_system_prompt(lesson),
            provider_name=provider.name,
            fingerprint=fingerprint,
        )

        # STAGE-4: Streaming
        yield TutorEvent.start()
        parts: list[str] = []
        end: EndChunk | None = None

        try:
            async with aclosing(self._orchestrator.stream(call, cancel_event)) as chunks:
                async for chunk in chunks:
                    if isinstance(chunk, TokenChunk):
                        parts.append(chunk.delta)
                        yield TutorEvent.token(chunk.delta)
                    elif isinstance(chunk, EndChunk):
                        end = chunk
                        yield TutorEvent.end(chunk.usage)
        except LLMGatewayError as e:
            if e.kind in FALLBACK_ERROR_KINDS and not "".join(parts).strip():
                log_stage(
                    logger, "5.0", "Gateway produced no answer, answering deterministically",
                    lesson_id=lesson.lesson_id, kind=e.kind.value,
                )
                async for event in self._fallback_events(request, message, cancel_event):
                    yield event
                return
            logger.warning(
                "Tutor turn failed",
                stage="4.9",
                lesson_id=lesson.lesson_id,
                provider=provider.name,
                kind=e.kind.value,
                error=e.message,
            )
            yield TutorEvent.error(e.message, code=e.kind.value)
            return

        if end is None or self._aborted(cancel_event):
            log_stage(logger, "6.1", "Tutor turn aborted", lesson_id=lesson.lesson_id, tokens=len(parts))
            return

        # STAGE-6: Side effects for live answers only
        if not end.cached:
            answer = "".join(parts)
            await self._cache_answer(fingerprint, answer, end.usage)
            await self._persist(lesson.lesson_id, message, answer)

        yield TutorEvent.suggestion_list(generate_suggestions(lesson))

    @staticmethod
    def validate_message(message: str) -> None:
        """
        STAGE-1.2: Message validation

        Raises:
            InvalidInputError: Empty or oversized message (learner-facing text)
        """
        if not message:
            raise InvalidInputError(EMPTY_MESSAGE_ERROR, details={"length": 0})
        if len(message) > MAX_USER_MESSAGE_LENGTH:
            raise InvalidInputError(MESSAGE_TOO_LONG_ERROR, details={"length": len(message)})

    # ------------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------------

    @staticmethod
    def _aborted(cancel_event: asyncio.Event | None) -> bool:
        return cancel_event is not None and cancel_event.is_set()

    async def _fallback_events(
        self,
        request: TutorTurnRequest,
        message: str,
        cancel_event: asyncio.Event | None,
    ) -> AsyncGenerator[TutorEvent, None]:
        """Deterministic answer rendered as token events (one per line)."""
        lesson = request.lesson_context
        expansion = generate_fallback_expansion(
            TopicContext(lesson_id=lesson.lesson_id, lesson_title=lesson.title or None),
            question=message,
            objectives=lesson.objectives,
        )

        for line in expansion.expanded_explanation.splitlines(keepends=True):
            if self._aborted(cancel_event):
                return
            yield TutorEvent.token(line)

        if self._aborted(cancel_event):
            return
        yield TutorEvent.end(Usage())
        yield TutorEvent.suggestion_list(generate_suggestions(lesson))

    async def _cache_answer(self, fingerprint: str, answer: str, usage: Usage) -> None:
        try:
            await self._cache.set(fingerprint, answer, usage)
        except Exception as e:
            logger.warning("Cache write failed", stage="2.3", fingerprint=fingerprint, error=str(e))

    async def _persist(self, lesson_id: str, question: str, answer: str) -> None:
        if self._store is None:
            return
        try:
            await self._store.save_message(lesson_id, "user", question)
            await self._store.save_message(lesson_id, "assistant", answer)
        except Exception as e:
            logger.warning("Conversation history write failed", stage="6.2", lesson_id=lesson_id, error=str(e))
