"""
OpenAI Provider

Chat Completions streaming over server-sent events. Each ``data:`` frame
carries a JSON delta; ``data: [DONE]`` closes the stream. Usage arrives in
a final frame with an empty ``choices`` list when ``include_usage`` is set.
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

_DONE = "[DONE]"


class OpenAIProvider(BaseProvider):
    """OpenAI Chat Completions adapter."""

    def build_payload(self, request: StreamRequest, model: str) -> dict[str, Any]:
        messages: list[dict[str, str]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.extend({"role": m.role, "content": m.content} for m in request.messages)

        return {
            "model": model,
            "messages": messages,
            "temperature": request.temperature,
            "top_p": request.top_p,
            "max_tokens": request.max_tokens or self.config.max_tokens,
            "stream": True,
            "stream_options": {"include_usage": True},
        }

    async def _stream_internal(self, request: StreamRequest, model: str) -> AsyncGenerator[StreamChunk, None]:
        url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {self.config.api_key}"}

        message_id: str | None = None
        usage = Usage()

        async with self._get_client().stream(
            "POST", url, json=self.build_payload(request, model), headers=headers
        ) as response:
            if not response.is_success:
                yield await self._error_chunk(response)
                return

            async for frame in self._iter_sse(response):
                if frame.data.strip() == _DONE:
                    break

                data = self._parse_json(frame.data)
                if not isinstance(data, dict):
                    continue

                if data.get("error"):
                    yield ErrorChunk(message=self._extract_error_message(data) or "Stream error")
                    return

                message_id = message_id or data.get("id")

                if data.get("usage"):
                    reported = data["usage"]
                    usage = Usage.from_counts(
                        reported.get("prompt_tokens"),
                        reported.get("completion_tokens"),
                        reported.get("total_tokens"),
                    )

                for choice in data.get("choices") or []:
                    delta = (choice.get("delta") or {}).get("content")
                    if delta:
                        yield TokenChunk(delta=delta)

        yield EndChunk(message_id=message_id or self._new_message_id(), usage=usage)
