"""Provider factory for creating LLM provider instances and chains."""

import logging
from typing import Dict, Iterable, Optional, Type

from .base import BaseProvider
from .chain import ProviderChain
from .openrouter import OpenRouterProvider
from .openai_provider import OpenAIProvider
from .anthropic_provider import AnthropicProvider
from .google_provider import GoogleProvider
import config
from config import VENDOR_PREFIXES

logger = logging.getLogger(__name__)


class ProviderFactory:
    """Factory for creating and managing LLM providers."""

    _providers: Dict[str, Type[BaseProvider]] = {
        "openrouter": OpenRouterProvider,
        "openai": OpenAIProvider,
        "anthropic": AnthropicProvider,
        "google": GoogleProvider,
    }

    _instances: Dict[str, BaseProvider] = {}

    @classmethod
    def names(cls) -> list:
        return list(cls._providers.keys())

    @classmethod
    def get(cls, provider_name: str) -> BaseProvider:
        """Get a provider instance.

        Args:
            provider_name: Name of the provider

        Returns:
            Provider instance

        Raises:
            ValueError: If provider is not found
        """
        name = provider_name.lower().strip()

        if name not in cls._providers:
            raise ValueError(
                f"Unknown provider: {name}. "
                f"Available: {list(cls._providers.keys())}"
            )

        # Return cached instance
        if name not in cls._instances:
            cls._instances[name] = cls._providers[name](max_retries=config.settings.max_retries)

        return cls._instances[name]

    @classmethod
    def clear(cls) -> None:
        """Drop cached instances so new API keys are picked up."""
        cls._instances.clear()

    @classmethod
    def get_available(cls) -> Dict[str, BaseProvider]:
        """Get all available (configured) providers."""
        available = {}
        for name in cls._providers:
            provider = cls.get(name)
            if provider.is_available():
                available[name] = provider
        return available

    @classmethod
    def build_chain(cls, names: Iterable[str]) -> ProviderChain:
        """Build an ordered fallback chain; unknown names are skipped."""
        providers = []
        for name in names:
            try:
                providers.append(cls.get(name))
            except ValueError as e:
                logger.warning("Skipping provider: %s", e)
        return ProviderChain(providers)

    @classmethod
    def model_to_provider(cls, model: str) -> Optional[str]:
        """Which direct provider can serve a router-style model id."""
        prefix = model.partition("/")[0].lower() if "/" in model else ""
        return VENDOR_PREFIXES.get(prefix)
