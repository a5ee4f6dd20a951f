"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .cache_factory import CacheTestFactory, FakeRedisClient
from .provider_factory import ProviderTestFactory, RecordingConversationStore, ScriptedProvider
from .request_factory import RequestFactory

__all__ = [
    "CacheTestFactory",
    "FakeRedisClient",
    "ProviderTestFactory",
    "RecordingConversationStore",
    "ScriptedProvider",
    "RequestFactory",
]
