"""Tests for LLM providers."""

import asyncio
import json
from types import SimpleNamespace

import httpx
import openai
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import config
from errors import (
    ProviderEmptyResponse,
    ProviderHttpError,
    ProviderNotConfigured,
    ProviderTimeout,
)
from providers import (
    AnthropicProvider,
    GoogleProvider,
    OpenAIProvider,
    OpenRouterProvider,
    ProviderFactory,
    StaticProvider,
)
from providers.base import BaseProvider, LLMResponse, vendor_model
from schemas.chat import ChatRequest


def make_request(**overrides) -> ChatRequest:
    values = {
        "model": "openai/gpt-4o-mini",
        "messages": [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hello"},
        ],
        "max_tokens": 50,
        "timeout_ms": 2_000,
    }
    values.update(overrides)
    return ChatRequest(**values)


class ScriptedProvider(BaseProvider):
    """Raises or answers from a list, one item per backend call."""

    name = "scripted"

    def __init__(self, script, **retry_options):
        retry_options.setdefault("retry_min_wait", 0)
        retry_options.setdefault("retry_max_wait", 0)
        super().__init__(**retry_options)
        self.script = list(script)
        self.calls = 0

    def is_available(self) -> bool:
        return True

    async def _complete(self, request):
        self.calls += 1
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, float):
            await asyncio.sleep(item)
            item = "late"
        return LLMResponse(content=item, model=request.model, provider=self.name)


class TestProviderFactory:
    """Test cases for ProviderFactory."""

    def test_get_provider_by_name(self):
        """Test getting provider by name."""
        provider = ProviderFactory.get("openrouter")
        assert isinstance(provider, OpenRouterProvider)

    def test_get_is_cached(self):
        assert ProviderFactory.get("openai") is ProviderFactory.get("OpenAI ")

    def test_get_unknown_provider(self):
        """Test error on unknown provider."""
        with pytest.raises(ValueError) as exc_info:
            ProviderFactory.get("unknown_provider")
        assert "Unknown provider" in str(exc_info.value)

    def test_build_chain_keeps_order_and_skips_unknown(self):
        chain = ProviderFactory.build_chain(["anthropic", "nope", "openrouter"])
        assert chain.names == ["anthropic", "openrouter"]

    def test_model_to_provider_mapping(self):
        """Test model to provider mapping."""
        assert ProviderFactory.model_to_provider("anthropic/claude-3.5-sonnet") == "anthropic"
        assert ProviderFactory.model_to_provider("google/gemini-2.0-flash-001") == "google"
        assert ProviderFactory.model_to_provider("meta-llama/llama-3-70b") is None
        assert ProviderFactory.model_to_provider("gpt-4o") is None


class TestVendorModel:
    """Test cases for router id translation."""

    def test_strips_matching_prefix(self):
        assert vendor_model("openai/gpt-4o", "openai", "gpt-4o-mini") == "gpt-4o"

    def test_other_vendor_falls_back(self):
        assert vendor_model("anthropic/claude-3.5-sonnet", "openai", "gpt-4o-mini") == "gpt-4o-mini"

    def test_bare_name_passes_through(self):
        assert vendor_model("gpt-4.1", "openai", "gpt-4o-mini") == "gpt-4.1"

    def test_empty_uses_default(self):
        assert vendor_model(None, "google", "gemini-2.0-flash") == "gemini-2.0-flash"


class TestBaseProviderChat:
    """Test cases for the shared timeout / retry / empty-response handling."""

    @pytest.mark.asyncio
    async def test_success(self):
        provider = ScriptedProvider(["OK"])
        response = await provider.chat(make_request())
        assert response.content == "OK"
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        """429 and 5xx are retried within one call."""
        provider = ScriptedProvider([
            ProviderHttpError(429, "slow down"),
            ProviderHttpError(503, "busy"),
            "OK",
        ], max_retries=3)
        response = await provider.chat(make_request())
        assert response.content == "OK"
        assert provider.calls == 3

    @pytest.mark.asyncio
    async def test_does_not_retry_client_errors(self):
        provider = ScriptedProvider([ProviderHttpError(401, "bad key"), "OK"], max_retries=3)
        with pytest.raises(ProviderHttpError) as exc_info:
            await provider.chat(make_request())
        assert exc_info.value.status == 401
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        provider = ScriptedProvider([ProviderHttpError(500, "boom")] * 2, max_retries=2)
        with pytest.raises(ProviderHttpError):
            await provider.chat(make_request())
        assert provider.calls == 2

    @pytest.mark.asyncio
    async def test_timeout(self):
        provider = ScriptedProvider([1.0])
        with pytest.raises(ProviderTimeout) as exc_info:
            await provider.chat(make_request(timeout_ms=50))
        assert exc_info.value.timeout_ms == 50

    @pytest.mark.asyncio
    async def test_blank_content_is_empty_response(self):
        provider = ScriptedProvider(["   \n"])
        with pytest.raises(ProviderEmptyResponse):
            await provider.chat(make_request())

    @pytest.mark.asyncio
    async def test_not_configured(self):
        provider = OpenRouterProvider()
        with patch.object(config.settings, "openrouter_api_key", None):
            with pytest.raises(ProviderNotConfigured):
                await provider.chat(make_request())


class TestOpenRouterProvider:
    """Test cases for OpenRouter provider."""

    def test_availability_without_key(self):
        """Test provider is unavailable without API key."""
        with patch.object(config.settings, "openrouter_api_key", None):
            provider = OpenRouterProvider()
            assert provider.is_available() is False

    def test_model_passthrough(self):
        provider = OpenRouterProvider(api_key="test-key")
        assert provider.resolve_model("anthropic/claude-3.5-sonnet") == "anthropic/claude-3.5-sonnet"

    @pytest.mark.asyncio
    async def test_request_body_and_response(self):
        """Test the OpenAI-style wire format."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "choices": [{"message": {"content": "Hi there"}, "finish_reason": "stop"}],
                "usage": {"total_tokens": 12},
            })

        provider = OpenRouterProvider(
            api_key="test-key",
            base_url="https://router.test/api/v1/",
            transport=httpx.MockTransport(handler),
        )
        response = await provider.chat(make_request(response_format={"type": "json_object"}))

        assert response.content == "Hi there"
        assert response.tokens_used == 12
        assert response.provider == "openrouter"
        assert seen["url"] == "https://router.test/api/v1/chat/completions"
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"]["model"] == "openai/gpt-4o-mini"
        assert seen["body"]["max_tokens"] == 50
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert seen["body"]["messages"][0] == {"role": "system", "content": "Be brief."}

    @pytest.mark.asyncio
    async def test_reasoning_fallback(self):
        def handler(request):
            return httpx.Response(200, json={
                "choices": [{"message": {"content": "", "reasoning": "Thought it through"}}],
            })

        provider = OpenRouterProvider(api_key="k", transport=httpx.MockTransport(handler))
        response = await provider.chat(make_request())
        assert response.content == "Thought it through"

    @pytest.mark.asyncio
    async def test_http_error(self):
        def handler(request):
            return httpx.Response(402, text="Payment required")

        provider = OpenRouterProvider(api_key="k", transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderHttpError) as exc_info:
            await provider.chat(make_request())
        assert exc_info.value.status == 402
        assert "Payment required" in exc_info.value.body

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(502, text="Bad gateway")
            return httpx.Response(200, json={"choices": [{"message": {"content": "OK"}}]})

        provider = OpenRouterProvider(
            api_key="k",
            transport=httpx.MockTransport(handler),
            retry_min_wait=0,
            retry_max_wait=0,
        )
        response = await provider.chat(make_request())
        assert response.content == "OK"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_empty_choices(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        provider = OpenRouterProvider(api_key="k", transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderEmptyResponse):
            await provider.chat(make_request())

    @pytest.mark.asyncio
    async def test_body_not_an_object(self):
        def handler(request):
            return httpx.Response(200, json="upstream busy")

        provider = OpenRouterProvider(api_key="k", transport=httpx.MockTransport(handler), max_retries=1)
        with pytest.raises(ProviderHttpError) as exc_info:
            await provider.chat(make_request())
        assert exc_info.value.status == 502

    @pytest.mark.asyncio
    async def test_content_parts_list(self):
        def handler(request):
            return httpx.Response(200, json={
                "choices": [{"message": {"content": [{"type": "text", "text": "Hi"}]}}],
            })

        provider = OpenRouterProvider(api_key="k", transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderEmptyResponse):
            await provider.chat(make_request())


class TestOpenAIProvider:
    """Test cases for the OpenAI SDK provider."""

    def _provider(self, create):
        provider = OpenAIProvider(api_key="sk-test")
        provider._client = MagicMock()
        provider._client.chat.completions.create = create
        return provider

    @pytest.mark.asyncio
    async def test_translates_model_and_reads_content(self):
        completion = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="Done"), finish_reason="stop")],
            usage=SimpleNamespace(total_tokens=7),
        )
        create = AsyncMock(return_value=completion)
        provider = self._provider(create)

        response = await provider.chat(make_request(model="openai/gpt-4o"))

        assert response.content == "Done"
        assert response.model == "gpt-4o"
        assert create.call_args.kwargs["model"] == "gpt-4o"
        assert create.call_args.kwargs["max_tokens"] == 50

    @pytest.mark.asyncio
    async def test_status_error_mapped(self):
        error = openai.APIStatusError(
            "unauthorized",
            response=httpx.Response(401, request=httpx.Request("POST", "https://api.openai.com")),
            body=None,
        )
        provider = self._provider(AsyncMock(side_effect=error))
        with pytest.raises(ProviderHttpError) as exc_info:
            await provider.chat(make_request())
        assert exc_info.value.status == 401

    def test_unavailable_without_key(self):
        with patch.object(config.settings, "openai_api_key", None):
            assert OpenAIProvider().is_available() is False


class TestAnthropicProvider:
    """Test cases for the Anthropic SDK provider."""

    @pytest.mark.asyncio
    async def test_system_prompt_split_out(self):
        message = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="Part one. "), SimpleNamespace(type="text", text="Part two.")],
            usage=SimpleNamespace(input_tokens=5, output_tokens=6),
            stop_reason="end_turn",
        )
        provider = AnthropicProvider(api_key="sk-ant-test")
        provider._client = MagicMock()
        provider._client.messages.create = AsyncMock(return_value=message)

        response = await provider.chat(make_request(model="anthropic/claude-3.5-sonnet"))

        kwargs = provider._client.messages.create.call_args.kwargs
        assert kwargs["system"] == "Be brief."
        assert kwargs["messages"] == [{"role": "user", "content": "Hello"}]
        assert kwargs["model"] == "claude-3.5-sonnet"
        assert response.content == "Part one. Part two."
        assert response.tokens_used == 11

    def test_foreign_model_uses_default(self):
        provider = AnthropicProvider(api_key="k")
        assert provider.resolve_model("openai/gpt-4o") == provider.default_model


class TestGoogleProvider:
    """Test cases for the Gemini provider."""

    def test_assistant_role_becomes_model(self):
        request = make_request(messages=[
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "q"},
            {"role": "assistant", "content": "a"},
        ])
        contents = GoogleProvider._contents(request)
        assert [c["role"] for c in contents] == ["user", "model"]

    def test_resolve_model(self):
        provider = GoogleProvider(api_key="k")
        assert provider.resolve_model("google/gemini-2.0-flash-001") == "gemini-2.0-flash-001"


class TestStaticProvider:
    """Test cases for the offline provider."""

    @pytest.mark.asyncio
    async def test_always_answers(self):
        provider = StaticProvider('{"synthesis": "offline"}')
        response = await provider.chat(make_request(model="anything"))
        assert provider.is_available() is True
        assert response.content == '{"synthesis": "offline"}'
        assert response.model == "offline"


class TestProviderIntegration:
    """Integration tests for providers (require API keys)."""

    @pytest.mark.skip(reason="Requires API key")
    @pytest.mark.asyncio
    async def test_openrouter_real_request(self):
        """Test real OpenRouter request."""
        provider = OpenRouterProvider()
        if not provider.is_available():
            pytest.skip("OpenRouter not configured")

        response = await provider.chat(make_request(max_tokens=10))
        assert len(response.content) > 0
