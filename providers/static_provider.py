"""Static offline provider - last link of a fallback chain."""

from .base import BaseProvider, LLMResponse
from schemas.chat import ChatRequest


class StaticProvider(BaseProvider):
    """Returns a fixed text without any network call."""

    name = "static"

    def __init__(self, text: str, model: str = "offline"):
        super().__init__(max_retries=1)
        self.text = text
        self.model = model

    def is_available(self) -> bool:
        return True

    def resolve_model(self, model=None) -> str:
        return self.model

    async def _complete(self, request: ChatRequest) -> LLMResponse:
        return LLMResponse(
            content=self.text,
            model=self.model,
            provider=self.name,
            finish_reason="stop",
        )
