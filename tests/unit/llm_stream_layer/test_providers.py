"""
Unit Tests for LLM Providers

Tests wire translation for each vendor adapter against httpx.MockTransport,
plus the chunk-sequence guarantees enforced by BaseProvider.
"""

import httpx
import orjson
import pytest

from tests.test_fixtures.provider_factory import ProviderTestFactory
from tutor_gateway.core.exceptions import ConfigurationError
from tutor_gateway.llm_stream.models.stream_request import StreamRequest, Usage
from tutor_gateway.llm_stream.providers.anthropic_provider import AnthropicProvider
from tutor_gateway.llm_stream.providers.base_provider import (
    BaseProvider,
    EndChunk,
    ErrorChunk,
    ProviderConfig,
    TokenChunk,
)
from tutor_gateway.llm_stream.providers.gemini_provider import GeminiProvider
from tutor_gateway.llm_stream.providers.openai_provider import OpenAIProvider


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def sse(*frames: str) -> bytes:
    return "".join(f"{frame}\n\n" for frame in frames).encode()


async def collect(provider: BaseProvider, request: StreamRequest) -> list:
    return [chunk async for chunk in provider.stream(request)]


@pytest.fixture
def stream_request() -> StreamRequest:
    return StreamRequest(
        messages=[
            {"role": "user", "content": "¿Qué es la PEEP?"},
            {"role": "assistant", "content": "Es una presión."},
            {"role": "user", "content": "¿Para qué sirve?"},
        ],
        system_prompt="Eres un tutor de ventilación mecánica.",
        temperature=0.3,
        top_p=0.9,
    )


def config(name: str, base_url: str, model: str, fallback_model: str | None = None) -> ProviderConfig:
    return ProviderConfig(
        name=name,
        api_key="test-key",
        base_url=base_url,
        default_model=model,
        fallback_model=fallback_model,
        max_tokens=512,
    )


# ============================================================================
# OpenAI
# ============================================================================


@pytest.mark.unit
class TestOpenAIProvider:
    """Test suite for the Chat Completions adapter."""

    async def test_streams_tokens_and_usage(self, stream_request):
        # Arrange
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            body = sse(
                'data: {"id":"chatcmpl-1","choices":[{"delta":{"role":"assistant"}}]}',
                'data: {"id":"chatcmpl-1","choices":[{"delta":{"content":"La "}}]}',
                'data: {"id":"chatcmpl-1","choices":[{"delta":{"content":"PEEP"}}]}',
                'data: {"id":"chatcmpl-1","choices":[],"usage":'
                '{"prompt_tokens":10,"completion_tokens":20,"total_tokens":30}}',
                "data: [DONE]",
            )
            return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

        provider = OpenAIProvider(
            config("openai", "https://api.openai.test/v1", "gpt-4o"), http_client=mock_client(handler)
        )

        # Act
        chunks = await collect(provider, stream_request)

        # Assert
        assert chunks == [
            TokenChunk(delta="La "),
            TokenChunk(delta="PEEP"),
            EndChunk(message_id="chatcmpl-1", usage=Usage(prompt_tokens=10, completion_tokens=20, total_tokens=30)),
        ]
        request = captured[0]
        assert str(request.url) == "https://api.openai.test/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer test-key"

    def test_payload_puts_system_prompt_first(self, stream_request):
        provider = OpenAIProvider(config("openai", "https://api.openai.test/v1", "gpt-4o"))

        payload = provider.build_payload(stream_request, "gpt-4o")

        assert payload["messages"][0] == {"role": "system", "content": "Eres un tutor de ventilación mecánica."}
        assert [m["role"] for m in payload["messages"][1:]] == ["user", "assistant", "user"]
        assert payload["stream"] is True
        assert payload["max_tokens"] == 512
        assert payload["stream_options"] == {"include_usage": True}

    async def test_error_status_becomes_error_chunk(self, stream_request):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "Incorrect API key provided"}})

        provider = OpenAIProvider(
            config("openai", "https://api.openai.test/v1", "gpt-4o"), http_client=mock_client(handler)
        )

        chunks = await collect(provider, stream_request)

        assert chunks == [ErrorChunk(message="Incorrect API key provided", status=401)]

    async def test_unreadable_error_body_uses_status_text(self, stream_request):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, content=b"<html>Service Unavailable</html>")

        provider = OpenAIProvider(
            config("openai", "https://api.openai.test/v1", "gpt-4o"), http_client=mock_client(handler)
        )

        chunks = await collect(provider, stream_request)

        assert chunks == [ErrorChunk(message="HTTP 503", status=503)]

    async def test_error_frame_mid_stream(self, stream_request):
        def handler(request: httpx.Request) -> httpx.Response:
            body = sse(
                'data: {"id":"c1","choices":[{"delta":{"content":"La"}}]}',
                'data: {"error":{"message":"The server is overloaded"}}',
            )
            return httpx.Response(200, content=body)

        provider = OpenAIProvider(
            config("openai", "https://api.openai.test/v1", "gpt-4o"), http_client=mock_client(handler)
        )

        chunks = await collect(provider, stream_request)

        assert chunks == [TokenChunk(delta="La"), ErrorChunk(message="The server is overloaded")]

    async def test_model_not_found_falls_back_once(self, stream_request):
        models: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            model = orjson.loads(request.content)["model"]
            models.append(model)
            if model == "gpt-4o":
                return httpx.Response(404, json={"error": {"message": "The model `gpt-4o` does not exist"}})
            return httpx.Response(200, content=sse('data: {"id":"c2","choices":[{"delta":{"content":"OK"}}]}'))

        provider = OpenAIProvider(
            config("openai", "https://api.openai.test/v1", "gpt-4o", fallback_model="gpt-4o-mini"),
            http_client=mock_client(handler),
        )

        chunks = await collect(provider, stream_request)

        assert models == ["gpt-4o", "gpt-4o-mini"]
        assert chunks[0] == TokenChunk(delta="OK")
        assert isinstance(chunks[-1], EndChunk)

    async def test_transport_failure_propagates(self, stream_request):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        provider = OpenAIProvider(
            config("openai", "https://api.openai.test/v1", "gpt-4o"), http_client=mock_client(handler)
        )

        with pytest.raises(httpx.ConnectError):
            await collect(provider, stream_request)


# ============================================================================
# Anthropic
# ============================================================================


@pytest.mark.unit
class TestAnthropicProvider:
    """Test suite for the Messages adapter."""

    async def test_streams_tokens_and_split_usage(self, stream_request):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            body = sse(
                'event: message_start\ndata: {"type":"message_start","message":'
                '{"id":"msg_01","usage":{"input_tokens":12,"output_tokens":1}}}',
                "event: ping\ndata: {\"type\":\"ping\"}",
                'event: content_block_delta\ndata: {"type":"content_block_delta","index":0,'
                '"delta":{"type":"text_delta","text":"Hola"}}',
                'event: message_delta\ndata: {"type":"message_delta","usage":{"output_tokens":7}}',
                'event: message_stop\ndata: {"type":"message_stop"}',
            )
            return httpx.Response(200, content=body)

        provider = AnthropicProvider(
            config("anthropic", "https://api.anthropic.test", "claude-test"), http_client=mock_client(handler)
        )

        chunks = await collect(provider, stream_request)

        assert chunks == [
            TokenChunk(delta="Hola"),
            EndChunk(message_id="msg_01", usage=Usage(prompt_tokens=12, completion_tokens=7, total_tokens=19)),
        ]
        request = captured[0]
        assert str(request.url) == "https://api.anthropic.test/v1/messages"
        assert request.headers["x-api-key"] == "test-key"
        assert request.headers["anthropic-version"] == "2023-06-01"

    def test_payload_carries_system_separately(self, stream_request):
        provider = AnthropicProvider(config("anthropic", "https://api.anthropic.test", "claude-test"))

        payload = provider.build_payload(stream_request, "claude-test")

        assert payload["system"] == "Eres un tutor de ventilación mecánica."
        assert all(m["role"] != "system" for m in payload["messages"])
        assert payload["max_tokens"] == 512

    def test_merge_turns_alternates_roles(self):
        request = StreamRequest(
            messages=[
                {"role": "assistant", "content": "Bienvenido"},
                {"role": "user", "content": "a"},
                {"role": "user", "content": "b"},
                {"role": "assistant", "content": "c"},
            ]
        )

        assert AnthropicProvider.merge_turns(request) == [
            {"role": "user", "content": "a\n\nb"},
            {"role": "assistant", "content": "c"},
        ]

    async def test_error_event(self, stream_request):
        def handler(request: httpx.Request) -> httpx.Response:
            body = sse('event: error\ndata: {"type":"error","error":{"type":"overloaded_error","message":"Overloaded"}}')
            return httpx.Response(200, content=body)

        provider = AnthropicProvider(
            config("anthropic", "https://api.anthropic.test", "claude-test"), http_client=mock_client(handler)
        )

        assert await collect(provider, stream_request) == [ErrorChunk(message="Overloaded")]


# ============================================================================
# Gemini
# ============================================================================


@pytest.mark.unit
class TestGeminiProvider:
    """Test suite for the buffered JSON-array adapter."""

    async def test_array_body_emitted_as_chunks(self, stream_request):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(
                200,
                json=[
                    {"candidates": [{"content": {"parts": [{"text": "La PEEP"}]}}], "responseId": "resp-1"},
                    {
                        "candidates": [{"content": {"parts": [{"text": " mantiene"}]}}],
                        "usageMetadata": {"promptTokenCount": 5, "candidatesTokenCount": 3, "totalTokenCount": 8},
                    },
                ],
            )

        provider = GeminiProvider(
            config("google", "https://gemini.test/v1beta", "gemini-test"), http_client=mock_client(handler)
        )

        chunks = await collect(provider, stream_request)

        assert chunks == [
            TokenChunk(delta="La PEEP"),
            TokenChunk(delta=" mantiene"),
            EndChunk(message_id="resp-1", usage=Usage(prompt_tokens=5, completion_tokens=3, total_tokens=8)),
        ]
        request = captured[0]
        assert str(request.url) == "https://gemini.test/v1beta/models/gemini-test:streamGenerateContent"
        assert request.headers["x-goog-api-key"] == "test-key"

    def test_contents_use_model_role_and_prepend_system(self, stream_request):
        contents = GeminiProvider.build_contents(stream_request)

        assert [c["role"] for c in contents] == ["user", "model", "user"]
        assert contents[0]["parts"][0]["text"] == "Eres un tutor de ventilación mecánica.\n\n¿Qué es la PEEP?"
        assert contents[2]["parts"][0]["text"] == "¿Para qué sirve?"

    def test_generation_config(self, stream_request):
        provider = GeminiProvider(config("google", "https://gemini.test/v1beta", "gemini-test"))

        payload = provider.build_payload(stream_request, "gemini-test")

        assert payload["generationConfig"] == {"temperature": 0.3, "topP": 0.9, "maxOutputTokens": 512}

    async def test_error_element_in_array(self, stream_request):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json=[{"error": {"code": 429, "message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED"}}],
            )

        provider = GeminiProvider(
            config("google", "https://gemini.test/v1beta", "gemini-test"), http_client=mock_client(handler)
        )

        assert await collect(provider, stream_request) == [
            ErrorChunk(message="Resource has been exhausted", status=429)
        ]

    async def test_list_wrapped_error_body(self, stream_request):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json=[{"error": {"code": 400, "message": "API key not valid"}}])

        provider = GeminiProvider(
            config("google", "https://gemini.test/v1beta", "gemini-test"), http_client=mock_client(handler)
        )

        assert await collect(provider, stream_request) == [ErrorChunk(message="API key not valid", status=400)]


# ============================================================================
# BaseProvider guarantees
# ============================================================================


@pytest.mark.unit
class TestBaseProviderSequence:
    """Test the terminal-chunk contract shared by every adapter."""

    async def test_missing_terminal_chunk_is_synthesized(self, stream_request):
        provider = ProviderTestFactory.scripted_provider([TokenChunk(delta="hola")])

        chunks = await collect(provider, stream_request)

        assert chunks[0] == TokenChunk(delta="hola")
        assert isinstance(chunks[1], EndChunk)
        assert len(chunks) == 2

    async def test_nothing_after_terminal_chunk(self, stream_request):
        provider = ProviderTestFactory.scripted_provider(
            [EndChunk(message_id="m1"), TokenChunk(delta="late")]
        )

        assert await collect(provider, stream_request) == [EndChunk(message_id="m1")]

    async def test_404_after_tokens_is_not_retried(self, stream_request):
        provider = ProviderTestFactory.scripted_provider(
            [TokenChunk(delta="a"), ErrorChunk(message="not found", status=404)],
            fallback_model="fallback-model",
        )

        chunks = await collect(provider, stream_request)

        assert provider.models_called == ["test-model"]
        assert chunks[-1] == ErrorChunk(message="not found", status=404)

    async def test_404_without_fallback_model_surfaces(self, stream_request):
        provider = ProviderTestFactory.scripted_provider([ErrorChunk(message="not found", status=404)])

        assert await collect(provider, stream_request) == [ErrorChunk(message="not found", status=404)]

    async def test_fallback_model_used_once(self, stream_request):
        provider = ProviderTestFactory.scripted_provider(
            [ErrorChunk(message="model not found", status=404)],
            fallback_model="fallback-model",
        )

        chunks = await collect(provider, stream_request)

        assert provider.models_called == ["test-model", "fallback-model"]
        assert chunks == [ErrorChunk(message="model not found", status=404)]

    async def test_iter_sse_joins_data_lines_and_skips_comments(self):
        response = httpx.Response(200, content=b": keep-alive\nevent: delta\ndata: uno\ndata: dos\n\ndata: tres")

        frames = [frame async for frame in BaseProvider._iter_sse(response)]

        assert [(f.event, f.data) for f in frames] == [("delta", "uno\ndos"), (None, "tres")]

    def test_describe(self):
        provider = ProviderTestFactory.success_provider(name="anthropic")
        assert provider.describe()["name"] == "anthropic"

    def test_missing_api_key_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            OpenAIProvider(
                ProviderConfig(name="openai", api_key="", base_url="https://api.openai.test/v1", default_model="gpt-4o")
            )

        assert exc_info.value.details == {"provider": "openai"}
