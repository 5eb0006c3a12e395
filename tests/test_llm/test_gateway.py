"""
Tests for the text gateways, using httpx mock transports in place of the
provider APIs.
"""

import json
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httpx
import pytest

from scenecast.core.config import Settings
from scenecast.core.exceptions import (
    ContentBlockedError,
    LLMProviderError,
    MissingConfigError,
    RateLimitError,
)
from scenecast.llm.gateway import (
    GeminiTextGateway,
    ModelProvider,
    OpenAIChatGateway,
    ProviderConfig,
    create_text_gateway,
    extract_gemini_text,
    parse_retry_after,
)


def gemini_config() -> ProviderConfig:
    return ProviderConfig(
        provider=ModelProvider.GEMINI,
        api_key="g-key",
        model="gemini-test",
        base_url="https://gemini.test/v1beta",
    )


def openai_config() -> ProviderConfig:
    return ProviderConfig(
        provider=ModelProvider.OPENAI,
        api_key="sk-test",
        model="gpt-test",
        base_url="https://openai.test/v1",
    )


def gemini_payload(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def openai_chunk(content: str) -> str:
    return json.dumps({
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "created": 0,
        "model": "gpt-test",
        "choices": [{"index": 0, "delta": {"content": content}, "finish_reason": None}],
    })


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestProviderConfig:
    """Tests for ProviderConfig.from_settings."""

    def test_request_key_wins(self):
        settings = Settings(_env_file=None, openai_api_key="env-key")
        config = ProviderConfig.from_settings(settings, ModelProvider.OPENAI, api_key="req-key")
        assert config.api_key == "req-key"
        assert config.model == settings.openai_text_model

    def test_model_override(self):
        settings = Settings(_env_file=None, gemini_api_key="g")
        config = ProviderConfig.from_settings(settings, ModelProvider.GEMINI, model="gemini-pro")
        assert config.model == "gemini-pro"
        assert config.provider == ModelProvider.GEMINI

    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        settings = Settings(_env_file=None, gemini_api_key="")
        with pytest.raises(MissingConfigError) as excinfo:
            ProviderConfig.from_settings(settings, ModelProvider.GEMINI)
        assert excinfo.value.setting == "GEMINI_API_KEY"

    def test_display_names(self):
        assert ModelProvider.OPENAI.display_name == "OpenAI GPT-4"
        assert ModelProvider.GEMINI.display_name == "Google Gemini"

    def test_factory(self):
        assert isinstance(create_text_gateway(gemini_config()), GeminiTextGateway)
        assert isinstance(create_text_gateway(openai_config()), OpenAIChatGateway)


class TestGeminiTextGateway:
    """Tests for GeminiTextGateway."""

    @pytest.mark.asyncio
    async def test_stream_text(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers["x-goog-api-key"]
            body = "".join(
                f"data: {json.dumps(gemini_payload(text))}\n\n" for text in ["SCENE_", "START_1"]
            )
            return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

        gateway = GeminiTextGateway(gemini_config(), http_client=mock_client(handler))
        fragments = [f async for f in gateway.stream_text("prompt")]

        assert fragments == ["SCENE_", "START_1"]
        assert "models/gemini-test:streamGenerateContent" in seen["url"]
        assert "alt=sse" in seen["url"]
        assert seen["key"] == "g-key"

    @pytest.mark.asyncio
    async def test_stream_rate_limited(self):
        def handler(request):
            return httpx.Response(429, headers={"retry-after": "7"}, json={"error": {"message": "slow down"}})

        gateway = GeminiTextGateway(gemini_config(), http_client=mock_client(handler))
        with pytest.raises(RateLimitError) as excinfo:
            async for _ in gateway.stream_text("prompt"):
                pass
        assert excinfo.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_rate_limited_with_http_date_retry_after(self):
        def handler(request):
            return httpx.Response(
                429,
                headers={"retry-after": "Wed, 21 Oct 2015 07:28:00 GMT"},
                json={"error": {"message": "slow down"}},
            )

        gateway = GeminiTextGateway(gemini_config(), http_client=mock_client(handler))
        with pytest.raises(RateLimitError) as excinfo:
            async for _ in gateway.stream_text("prompt"):
                pass
        assert excinfo.value.retry_after == 0.0

    @pytest.mark.asyncio
    async def test_generate_text(self):
        def handler(request):
            payload = json.loads(request.content)
            assert payload["generationConfig"]["temperature"] == 0.2
            assert payload["systemInstruction"]["parts"][0]["text"] == "be brief"
            return httpx.Response(200, json=gemini_payload("done"))

        gateway = GeminiTextGateway(gemini_config(), http_client=mock_client(handler))
        text = await gateway.generate_text("prompt", system="be brief", temperature=0.2)
        assert text == "done"

    @pytest.mark.asyncio
    async def test_blocked_content(self):
        def handler(request):
            return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

        gateway = GeminiTextGateway(gemini_config(), http_client=mock_client(handler))
        with pytest.raises(ContentBlockedError) as excinfo:
            await gateway.generate_text("prompt")
        assert excinfo.value.block_reason == "SAFETY"

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(400, json={"error": {"message": "bad prompt"}})

        gateway = GeminiTextGateway(gemini_config(), http_client=mock_client(handler))
        with pytest.raises(LLMProviderError) as excinfo:
            await gateway.generate_text("prompt")
        assert excinfo.value.status_code == 400
        assert excinfo.value.reason == "bad prompt"
        assert len(calls) == 1

    def test_extract_text(self):
        data = {"candidates": [{"content": {"parts": [{"text": "a"}, {"inlineData": {}}, {"text": "b"}]}}]}
        assert extract_gemini_text(data) == "ab"
        assert extract_gemini_text({}) == ""


class TestParseRetryAfter:

    def test_seconds(self):
        assert parse_retry_after("12") == 12.0

    def test_missing(self):
        assert parse_retry_after(None) is None
        assert parse_retry_after("") is None

    def test_future_http_date(self):
        when = datetime.now(timezone.utc) + timedelta(seconds=120)
        seconds = parse_retry_after(format_datetime(when, usegmt=True))
        assert 100 < seconds <= 120

    def test_past_http_date(self):
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 0.0

    def test_garbage(self):
        assert parse_retry_after("soon") is None


class TestOpenAIChatGateway:
    """Tests for OpenAIChatGateway over a mocked HTTP transport."""

    @pytest.mark.asyncio
    async def test_stream_text(self):
        def handler(request: httpx.Request) -> httpx.Response:
            payload = json.loads(request.content)
            assert payload["stream"] is True
            assert payload["model"] == "gpt-test"
            body = (
                f"data: {openai_chunk('Hello')}\n\n"
                f"data: {openai_chunk(' world')}\n\n"
                "data: [DONE]\n\n"
            )
            return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

        gateway = OpenAIChatGateway(openai_config(), http_client=mock_client(handler))
        fragments = [f async for f in gateway.stream_text("prompt")]
        assert "".join(fragments) == "Hello world"
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_generate_text(self):
        def handler(request):
            payload = json.loads(request.content)
            assert payload["messages"][0] == {"role": "system", "content": "sys"}
            return httpx.Response(200, json={
                "id": "chatcmpl-2",
                "object": "chat.completion",
                "created": 0,
                "model": "gpt-test",
                "choices": [{
                    "index": 0,
                    "message": {"role": "assistant", "content": "a prompt"},
                    "finish_reason": "stop",
                }],
            })

        gateway = OpenAIChatGateway(openai_config(), http_client=mock_client(handler))
        assert await gateway.generate_text("prompt", system="sys") == "a prompt"
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_status_error_mapped(self):
        def handler(request):
            return httpx.Response(401, json={"error": {"message": "bad key", "type": "invalid_request_error"}})

        gateway = OpenAIChatGateway(openai_config(), http_client=mock_client(handler))
        with pytest.raises(LLMProviderError) as excinfo:
            await gateway.generate_text("prompt")
        assert excinfo.value.status_code == 401
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_stream_rate_limit_mapped(self):
        def handler(request):
            return httpx.Response(429, json={"error": {"message": "slow down"}})

        gateway = OpenAIChatGateway(openai_config(), http_client=mock_client(handler))
        with pytest.raises(RateLimitError):
            async for _ in gateway.stream_text("prompt"):
                pass
        await gateway.aclose()
