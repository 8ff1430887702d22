"""Base provider interface for LLM APIs."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from errors import (
    ProviderEmptyResponse,
    ProviderHttpError,
    ProviderNotConfigured,
    ProviderTimeout,
)
from schemas.chat import ChatRequest

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from an LLM provider."""
    content: str
    model: str
    provider: str
    tokens_used: Optional[int] = None
    finish_reason: Optional[str] = None


def vendor_model(model: Optional[str], vendor: str, default: str) -> str:
    """Translate a router id (``vendor/model``) into a direct-API model name.

    Ids of another vendor fall back to ``default``; bare names pass through.
    """
    if not model:
        return default
    if "/" not in model:
        return model
    prefix, _, name = model.partition("/")
    return name if prefix == vendor else default


def is_transient(exc: BaseException) -> bool:
    """Rate limits and server errors are worth another attempt."""
    return isinstance(exc, ProviderHttpError) and exc.transient


class BaseProvider(ABC):
    """Abstract base class for LLM providers.

    ``chat`` owns timeout, retry, and empty-response detection for one request;
    subclasses only implement ``_complete``.
    """

    name: str = "base"

    def __init__(
        self,
        max_retries: int = 3,
        retry_min_wait: float = 1.0,
        retry_max_wait: float = 10.0,
    ):
        self.max_retries = max(1, max_retries)
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is configured and available."""
        pass

    @abstractmethod
    async def _complete(self, request: ChatRequest) -> LLMResponse:
        """Perform one backend call.

        Raises:
            ProviderHttpError: Non-2xx answer
            ProviderTimeout: Backend-reported timeout
        """
        pass

    def resolve_model(self, model: Optional[str]) -> str:
        """Map a requested model id to this backend's naming."""
        return model or "unknown"

    async def chat(self, request: ChatRequest) -> LLMResponse:
        """Send one chat request.

        Args:
            request: Model, messages, sampling parameters and timeout

        Returns:
            LLMResponse with non-blank content

        Raises:
            ProviderNotConfigured: No credentials
            ProviderTimeout: No answer within ``request.timeout_ms``
            ProviderHttpError: Non-2xx answer after retries
            ProviderEmptyResponse: 2xx answer without content
        """
        if not self.is_available():
            raise ProviderNotConfigured(f"{self.name} is not configured", self.name)

        try:
            response = await asyncio.wait_for(
                self._complete_with_retries(request),
                timeout=request.timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            raise ProviderTimeout(request.timeout_ms, self.name)

        if response.content is None or not response.content.strip():
            raise ProviderEmptyResponse(self.name)

        logger.debug(
            "%s answered for %s (%s tokens)",
            self.name, response.model, response.tokens_used,
        )
        return response

    async def _complete_with_retries(self, request: ChatRequest) -> LLMResponse:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=self.retry_min_wait, max=self.retry_max_wait),
            retry=retry_if_exception(is_transient),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info("%s retry %d for %s", self.name, attempt.retry_state.attempt_number, request.model)
                response = await self._complete(request)
        return response
