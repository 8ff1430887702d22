"""Anthropic (Claude) direct API provider."""

from typing import Optional

import anthropic
from anthropic import AsyncAnthropic

from .base import BaseProvider, LLMResponse, vendor_model
import config
from config import DIRECT_MODELS
from errors import ProviderHttpError, ProviderTimeout
from schemas.chat import ChatRequest

# Messages API requires an explicit output budget
DEFAULT_MAX_TOKENS = 4096


class AnthropicProvider(BaseProvider):
    """Anthropic API provider (single-vendor fallback)."""

    name = "anthropic"

    def __init__(self, api_key: Optional[str] = None, **retry_options):
        super().__init__(**retry_options)
        self.default_model = DIRECT_MODELS["anthropic"]
        self._api_key = api_key
        self._client = None

    @property
    def api_key(self) -> Optional[str]:
        """Explicit key, else current settings (supports hot reload)."""
        return self._api_key or config.settings.anthropic_api_key

    @property
    def client(self) -> AsyncAnthropic:
        """Lazy client initialization with current API key."""
        if self._client is None and self.api_key:
            self._client = AsyncAnthropic(api_key=self.api_key, max_retries=0)
        return self._client

    def is_available(self) -> bool:
        return bool(self.api_key)

    def resolve_model(self, model: Optional[str]) -> str:
        return vendor_model(model, "anthropic", self.default_model)

    async def _complete(self, request: ChatRequest) -> LLMResponse:
        model_id = self.resolve_model(request.model)

        try:
            response = await self.client.messages.create(
                model=model_id,
                max_tokens=request.max_tokens or DEFAULT_MAX_TOKENS,
                system=request.system_prompt or "",
                messages=[m.model_dump() for m in request.conversation],
                temperature=min(request.temperature, 1.0),
                timeout=request.timeout_ms / 1000,
            )
        except anthropic.APITimeoutError:
            raise ProviderTimeout(request.timeout_ms, self.name)
        except anthropic.APIStatusError as e:
            raise ProviderHttpError(e.status_code, str(e), self.name)
        except anthropic.APIConnectionError as e:
            raise ProviderHttpError(503, str(e), self.name)

        content = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        usage = response.usage

        return LLMResponse(
            content=content,
            model=model_id,
            provider=self.name,
            tokens_used=usage.input_tokens + usage.output_tokens if usage else None,
            finish_reason=response.stop_reason,
        )
