"""
Anthropic Provider

Messages API streaming. The system prompt travels in its own ``system``
field, turns must alternate user/assistant, and usage is split across
``message_start`` (input tokens) and ``message_delta`` (output tokens).
"""

from collections.abc import AsyncGenerator
from typing import Any

from tutor_gateway.core.logging.logger import get_logger
from tutor_gateway.llm_stream.models.stream_request import StreamRequest, Usage
from tutor_gateway.llm_stream.providers.base_provider import (
    BaseProvider,
    EndChunk,
    ErrorChunk,
    StreamChunk,
    TokenChunk,
)

logger = get_logger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(BaseProvider):
    """Anthropic Messages adapter."""

    @staticmethod
    def merge_turns(request: StreamRequest) -> list[dict[str, str]]:
        """Collapse consecutive same-role turns; the API rejects repeats."""
        merged: list[dict[str, str]] = []
        for message in request.messages:
            if merged and merged[-1]["role"] == message.role:
                merged[-1]["content"] = f"{merged[-1]['content']}\n\n{message.content}"
            else:
                merged.append({"role": message.role, "content": message.content})

        # The conversation must open with a user turn
        while merged and merged[0]["role"] != "user":
            merged.pop(0)
        return merged

    def build_payload(self, request: StreamRequest, model: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "messages": self.merge_turns(request),
            "max_tokens": request.max_tokens or self.config.max_tokens,
            "temperature": request.temperature,
            "top_p": request.top_p,
            "stream": True,
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt
        return payload

    async def _stream_internal(self, request: StreamRequest, model: str) -> AsyncGenerator[StreamChunk, None]:
        url = f"{self.config.base_url.rstrip('/')}/v1/messages"
        headers = {
            "x-api-key": self.config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

        message_id: str | None = None
        input_tokens = 0
        output_tokens = 0

        async with self._get_client().stream(
            "POST", url, json=self.build_payload(request, model), headers=headers
        ) as response:
            if not response.is_success:
                yield await self._error_chunk(response)
                return

            async for frame in self._iter_sse(response):
                data = self._parse_json(frame.data)
                if not isinstance(data, dict):
                    continue

                event_type = data.get("type") or frame.event

                if event_type == "message_start":
                    message = data.get("message") or {}
                    message_id = message.get("id") or message_id
                    start_usage = message.get("usage") or {}
                    input_tokens = start_usage.get("input_tokens") or input_tokens
                    output_tokens = start_usage.get("output_tokens") or output_tokens

                elif event_type == "content_block_delta":
                    delta = data.get("delta") or {}
                    if delta.get("type", "text_delta") == "text_delta" and delta.get("text"):
                        yield TokenChunk(delta=delta["text"])

                elif event_type == "message_delta":
                    delta_usage = data.get("usage") or {}
                    output_tokens = delta_usage.get("output_tokens") or output_tokens

                elif event_type == "message_stop":
                    break

                elif event_type == "error":
                    yield ErrorChunk(message=self._extract_error_message(data) or "Stream error")
                    return

        yield EndChunk(
            message_id=message_id or self._new_message_id(),
            usage=Usage.from_counts(input_tokens, output_tokens),
        )
