"""LLM Provider implementations."""

from .base import BaseProvider, LLMResponse
from .chain import ChainResult, ProviderChain
from .openrouter import OpenRouterProvider
from .openai_provider import OpenAIProvider
from .anthropic_provider import AnthropicProvider
from .google_provider import GoogleProvider
from .static_provider import StaticProvider
from .factory import ProviderFactory

__all__ = [
    "BaseProvider",
    "LLMResponse",
    "ChainResult",
    "ProviderChain",
    "OpenRouterProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "GoogleProvider",
    "StaticProvider",
    "ProviderFactory",
]
