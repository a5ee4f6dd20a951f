"""
Gemini Provider

``streamGenerateContent`` without ``alt=sse`` answers with a single JSON
array that is only complete once the body has drained. The adapter buffers
the whole body, parses it once and then emits chunks one element at a
time so callers still see the same lazy chunk sequence as the SSE vendors.

Wire differences handled here:
- ``assistant`` turns are sent with role ``model``
- The system prompt is prepended to the first user turn
- Usage is reported in ``usageMetadata`` (last element wins)
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


class GeminiProvider(BaseProvider):
    """Google Gemini adapter."""

    @staticmethod
    def build_contents(request: StreamRequest) -> list[dict[str, Any]]:
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in request.messages
        ]

        if request.system_prompt:
            for item in contents:
                if item["role"] == "user":
                    item["parts"][0]["text"] = f"{request.system_prompt}\n\n{item['parts'][0]['text']}"
                    break
            else:
                contents.insert(0, {"role": "user", "parts": [{"text": request.system_prompt}]})

        return contents

    def build_payload(self, request: StreamRequest, model: str) -> dict[str, Any]:
        return {
            "contents": self.build_contents(request),
            "generationConfig": {
                "temperature": request.temperature,
                "topP": request.top_p,
                "maxOutputTokens": request.max_tokens or self.config.max_tokens,
            },
        }

    async def _stream_internal(self, request: StreamRequest, model: str) -> AsyncGenerator[StreamChunk, None]:
        url = f"{self.config.base_url.rstrip('/')}/models/{model}:streamGenerateContent"
        headers = {"x-goog-api-key": self.config.api_key}

        async with self._get_client().stream(
            "POST", url, json=self.build_payload(request, model), headers=headers
        ) as response:
            if not response.is_success:
                yield await self._error_chunk(response)
                return
            body = await response.aread()

        payload = self._parse_json(body)
        if isinstance(payload, dict):
            payload = [payload]
        if not isinstance(payload, list):
            logger.warning("Unparseable Gemini response body", stage="4.3", provider=self.name, size=len(body))
            payload = []

        message_id: str | None = None
        usage = Usage()

        for element in payload:
            if not isinstance(element, dict):
                continue

            if element.get("error"):
                error = element["error"]
                status = error.get("code") if isinstance(error, dict) else None
                yield ErrorChunk(
                    message=self._extract_error_message(element) or "Stream error",
                    status=status if isinstance(status, int) else None,
                )
                return

            message_id = message_id or element.get("responseId")

            metadata = element.get("usageMetadata")
            if metadata:
                usage = Usage.from_counts(
                    metadata.get("promptTokenCount"),
                    metadata.get("candidatesTokenCount"),
                    metadata.get("totalTokenCount"),
                )

            for candidate in (element.get("candidates") or [])[:1]:
                for part in (candidate.get("content") or {}).get("parts") or []:
                    text = part.get("text")
                    if text:
                        yield TokenChunk(delta=text)

        yield EndChunk(message_id=message_id or self._new_message_id(), usage=usage)
