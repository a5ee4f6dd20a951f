"""
Chat Completions Route

One endpoint, two modes:

    stream=true  (default)  start, token*, end   (or start, error) as SSE
    stream=false            {"content", "usage", "provider", "message_id"}

Both go through the orchestrator with the same provider selection, retry
and per-attempt deadline as tutor turns. Chat answers are not cached.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import aclosing

from fastapi import APIRouter, Request

from tutor_gateway.application.api.dependencies import OrchestratorDep
from tutor_gateway.application.api.sse import sse_response
from tutor_gateway.core.exceptions import LLMGatewayError
from tutor_gateway.core.logging.logger import get_logger
from tutor_gateway.llm_stream.models.chat import ChatCompletionRequest, ChatCompletionResponse
from tutor_gateway.llm_stream.models.stream_request import TutorEvent
from tutor_gateway.llm_stream.providers.base_provider import EndChunk, TokenChunk
from tutor_gateway.llm_stream.services.prompts import build_tutor_system_prompt
from tutor_gateway.llm_stream.services.stream_orchestrator import GatewayCall, StreamOrchestrator

router = APIRouter(prefix="/chat", tags=["Chat"])
logger = get_logger(__name__)


def build_call(body: ChatCompletionRequest) -> GatewayCall:
    system_prompt = body.system_prompt
    if system_prompt is None and body.lesson_context is not None:
        system_prompt = build_tutor_system_prompt(body.lesson_context)
    return GatewayCall(
        messages=tuple(body.messages),
        system_prompt=system_prompt,
        provider_name=body.provider_name,
        temperature=body.temperature,
        max_tokens=body.max_tokens,
    )


async def chat_events(
    orchestrator: StreamOrchestrator,
    call: GatewayCall,
    cancel_event: asyncio.Event,
) -> AsyncGenerator[TutorEvent, None]:
    yield TutorEvent.start()
    try:
        async with aclosing(orchestrator.stream(call, cancel_event)) as chunks:
            async for chunk in chunks:
                if isinstance(chunk, TokenChunk):
                    yield TutorEvent.token(chunk.delta)
                elif isinstance(chunk, EndChunk):
                    yield TutorEvent.end(chunk.usage)
    except LLMGatewayError as e:
        logger.warning("Chat completion failed", stage="4.9", kind=e.kind.value, error=e.message)
        yield TutorEvent.error(e.message, code=e.kind.value)


@router.post(
    "/completions",
    response_model=ChatCompletionResponse,
    responses={
        200: {"content": {"text/event-stream": {}}},
        401: {"description": "Provider rejected the API key"},
        429: {"description": "Provider rate limit exceeded"},
        503: {"description": "No provider configured"},
    },
)
async def chat_completions(request: Request, body: ChatCompletionRequest, orchestrator: OrchestratorDep):
    logger.info(
        "Chat completion requested",
        stage="1.0",
        provider=body.provider_name,
        messages=len(body.messages),
        stream=body.stream,
    )
    call = build_call(body)

    if body.stream:
        return sse_response(lambda cancel_event: chat_events(orchestrator, call, cancel_event), request)

    result = await orchestrator.complete(call)
    return ChatCompletionResponse(
        content=result.text,
        usage=result.usage,
        provider=result.provider_name,
        message_id=result.message_id,
        cached=result.cached,
    )
