"""Google (Gemini) direct API provider."""

from typing import Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from .base import BaseProvider, LLMResponse, vendor_model
import config
from config import DIRECT_MODELS
from errors import ProviderHttpError, ProviderTimeout
from schemas.chat import ChatRequest


class GoogleProvider(BaseProvider):
    """Google Gemini API provider (single-vendor fallback)."""

    name = "google"
    _configured_key = None

    def __init__(self, api_key: Optional[str] = None, **retry_options):
        super().__init__(**retry_options)
        self.default_model = DIRECT_MODELS["google"]
        self._api_key = api_key

    @property
    def api_key(self) -> Optional[str]:
        """Explicit key, else current settings (supports hot reload)."""
        return self._api_key or config.settings.google_api_key

    def _ensure_configured(self):
        """Configure genai with current API key if changed."""
        if self.api_key and self.api_key != GoogleProvider._configured_key:
            genai.configure(api_key=self.api_key)
            GoogleProvider._configured_key = self.api_key

    def is_available(self) -> bool:
        return bool(self.api_key)

    def resolve_model(self, model: Optional[str]) -> str:
        return vendor_model(model, "google", self.default_model)

    @staticmethod
    def _contents(request: ChatRequest) -> list:
        """Gemini calls the assistant side 'model'."""
        return [
            {"role": "model" if m.role == "assistant" else "user", "parts": [m.content]}
            for m in request.conversation
        ]

    async def _complete(self, request: ChatRequest) -> LLMResponse:
        model_id = self.resolve_model(request.model)
        self._ensure_configured()

        generation_config = genai.types.GenerationConfig(
            temperature=request.temperature,
            max_output_tokens=request.max_tokens,
        )
        if request.response_format:
            generation_config.response_mime_type = "application/json"

        model_instance = genai.GenerativeModel(
            model_name=model_id,
            system_instruction=request.system_prompt,
            generation_config=generation_config,
        )

        try:
            response = await model_instance.generate_content_async(
                self._contents(request),
                request_options={"timeout": request.timeout_ms / 1000},
            )
        except google_exceptions.DeadlineExceeded:
            raise ProviderTimeout(request.timeout_ms, self.name)
        except google_exceptions.GoogleAPICallError as e:
            raise ProviderHttpError(int(e.code or 502), str(e), self.name)

        try:
            content = response.text
        except ValueError:
            # Raised when the candidate was blocked or has no text parts
            content = ""

        usage = getattr(response, "usage_metadata", None)
        return LLMResponse(
            content=content,
            model=model_id,
            provider=self.name,
            tokens_used=getattr(usage, "total_token_count", None),
            finish_reason="stop",
        )
