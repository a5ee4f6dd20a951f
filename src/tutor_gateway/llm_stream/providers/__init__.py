"""
LLM Providers Module

One adapter per vendor behind a single lazy chunk-sequence interface.
"""

from .anthropic_provider import AnthropicProvider
from .base_provider import (
    BaseProvider,
    EndChunk,
    ErrorChunk,
    ProviderConfig,
    ProviderIdentity,
    StreamChunk,
    TokenChunk,
)
from .gemini_provider import GeminiProvider
from .openai_provider import OpenAIProvider
from .registry import ProviderRegistry

__all__ = [
    "BaseProvider",
    "StreamChunk",
    "TokenChunk",
    "EndChunk",
    "ErrorChunk",
    "ProviderConfig",
    "ProviderIdentity",
    "ProviderRegistry",
    "OpenAIProvider",
    "AnthropicProvider",
    "GeminiProvider",
]
