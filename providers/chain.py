"""Ordered provider fallback chain."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

from .base import BaseProvider, LLMResponse
from errors import DecodeFailure, ProviderChainExhausted, ProviderError
from schemas.chat import ChatRequest

logger = logging.getLogger(__name__)


@dataclass
class ChainResult:
    """Outcome of a chain call: who answered, what, and the parsed value."""
    response: LLMResponse
    provider: str
    parsed: Any = None


class ProviderChain:
    """Chain of Responsibility over providers.

    Each link gets one independent attempt. A provider error, or a response the
    caller's ``parse`` rejects, moves on to the next link.
    """

    def __init__(self, providers: Sequence[BaseProvider]):
        self.providers: List[BaseProvider] = list(providers)

    def __len__(self) -> int:
        return len(self.providers)

    @property
    def names(self) -> List[str]:
        return [p.name for p in self.providers]

    def with_fallback(self, provider: BaseProvider) -> "ProviderChain":
        """New chain with ``provider`` appended as the last resort."""
        return ProviderChain([*self.providers, provider])

    def is_available(self) -> bool:
        return any(p.is_available() for p in self.providers)

    async def chat(
        self,
        request: ChatRequest,
        parse: Optional[Callable[[str], Any]] = None,
    ) -> ChainResult:
        """Walk the chain until one provider answers acceptably.

        Args:
            request: The chat request sent to every link
            parse: Optional validator; returning None rejects the answer

        Returns:
            ChainResult from the first acceptable answer

        Raises:
            ProviderChainExhausted: Every link failed or was rejected
        """
        errors: List[Exception] = []

        for provider in self.providers:
            if not provider.is_available():
                continue
            try:
                response = await provider.chat(request)
            except ProviderError as e:
                logger.warning("%s failed for %s: %s", provider.name, request.model, e)
                errors.append(e)
                continue
            except Exception as e:
                logger.exception("%s raised unexpectedly for %s", provider.name, request.model)
                errors.append(e)
                continue

            if parse is None:
                return ChainResult(response=response, provider=provider.name)

            parsed = parse(response.content)
            if parsed is None:
                logger.warning("%s returned an undecodable answer for %s", provider.name, request.model)
                errors.append(DecodeFailure(f"{provider.name}: undecodable response", response.content))
                continue
            return ChainResult(response=response, provider=provider.name, parsed=parsed)

        raise ProviderChainExhausted(errors)
