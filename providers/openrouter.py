"""OpenRouter provider - unified access to multiple LLMs."""

import logging
from typing import Optional

import httpx

from .base import BaseProvider, LLMResponse
import config
from errors import ProviderEmptyResponse, ProviderHttpError, ProviderTimeout
from schemas.chat import ChatRequest

logger = logging.getLogger(__name__)


class OpenRouterProvider(BaseProvider):
    """OpenRouter API provider (primary multi-model router)."""

    name = "openrouter"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **retry_options,
    ):
        super().__init__(**retry_options)
        self._api_key = api_key
        self._base_url = base_url
        self._transport = transport

    @property
    def api_key(self) -> Optional[str]:
        """Explicit key, else current settings (supports hot reload)."""
        return self._api_key or config.settings.openrouter_api_key

    @property
    def base_url(self) -> str:
        return (self._base_url or config.settings.openrouter_base_url).rstrip("/")

    def is_available(self) -> bool:
        return bool(self.api_key)

    def resolve_model(self, model: Optional[str]) -> str:
        # Router ids are passed through untouched
        return model or config.settings.model_list[0]

    async def _complete(self, request: ChatRequest) -> LLMResponse:
        model_id = self.resolve_model(request.model)

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": "http://localhost",
            "X-Title": "Boardroom",
            "Content-Type": "application/json",
        }

        payload = {
            "model": model_id,
            "messages": request.payload_messages(),
            "temperature": request.temperature,
        }
        if request.max_tokens:
            payload["max_tokens"] = request.max_tokens
        if request.response_format:
            payload["response_format"] = request.response_format

        timeout = min(request.timeout_ms / 1000, config.settings.request_timeout)

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=headers,
                    json=payload,
                )
        except httpx.TimeoutException:
            raise ProviderTimeout(request.timeout_ms, self.name)
        except httpx.TransportError as e:
            # Connection-level failures behave like a gateway error
            raise ProviderHttpError(503, str(e), self.name)

        if response.status_code >= 400:
            raise ProviderHttpError(response.status_code, response.text, self.name)

        try:
            data = response.json()
        except ValueError:
            raise ProviderHttpError(502, "Invalid JSON body", self.name)
        if not isinstance(data, dict):
            raise ProviderHttpError(502, f"Unexpected body: {response.text[:200]}", self.name)

        choices = data.get("choices") or [{}]
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise ProviderHttpError(502, "Malformed choices", self.name)
        message = choices[0].get("message") or {}
        content = message.get("content") or ""
        if not isinstance(content, str):
            raise ProviderEmptyResponse(self.name)
        if not content.strip():
            # Reasoning models sometimes leave content blank
            content = message.get("reasoning") or ""

        usage = data.get("usage") or {}
        return LLMResponse(
            content=content,
            model=model_id,
            provider=self.name,
            tokens_used=usage.get("total_tokens"),
            finish_reason=choices[0].get("finish_reason"),
        )
