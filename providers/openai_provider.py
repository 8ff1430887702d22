"""OpenAI direct API provider."""

from typing import Optional

import openai
from openai import AsyncOpenAI

from .base import BaseProvider, LLMResponse, vendor_model
import config
from config import DIRECT_MODELS
from errors import ProviderHttpError, ProviderTimeout
from schemas.chat import ChatRequest


class OpenAIProvider(BaseProvider):
    """OpenAI API provider (single-vendor fallback)."""

    name = "openai"

    def __init__(self, api_key: Optional[str] = None, **retry_options):
        super().__init__(**retry_options)
        self.default_model = DIRECT_MODELS["openai"]
        self._api_key = api_key
        self._client = None

    @property
    def api_key(self) -> Optional[str]:
        """Explicit key, else current settings (supports hot reload)."""
        return self._api_key or config.settings.openai_api_key

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy client initialization with current API key."""
        if self._client is None and self.api_key:
            # Retries are handled by BaseProvider
            self._client = AsyncOpenAI(api_key=self.api_key, max_retries=0)
        return self._client

    def is_available(self) -> bool:
        return bool(self.api_key)

    def resolve_model(self, model: Optional[str]) -> str:
        return vendor_model(model, "openai", self.default_model)

    async def _complete(self, request: ChatRequest) -> LLMResponse:
        model_id = self.resolve_model(request.model)

        kwargs = {
            "model": model_id,
            "messages": request.payload_messages(),
            "temperature": request.temperature,
            "timeout": request.timeout_ms / 1000,
        }
        if request.max_tokens:
            kwargs["max_tokens"] = request.max_tokens
        if request.response_format:
            kwargs["response_format"] = request.response_format

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APITimeoutError:
            raise ProviderTimeout(request.timeout_ms, self.name)
        except openai.APIStatusError as e:
            raise ProviderHttpError(e.status_code, str(e), self.name)
        except openai.APIConnectionError as e:
            raise ProviderHttpError(503, str(e), self.name)

        choice = response.choices[0] if response.choices else None
        content = choice.message.content if choice and choice.message else ""
        usage = response.usage

        return LLMResponse(
            content=content or "",
            model=model_id,
            provider=self.name,
            tokens_used=usage.total_tokens if usage else None,
            finish_reason=choice.finish_reason if choice else None,
        )
