"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys
from unittest.mock import AsyncMock

import pytest

# Add project root to sys.path (tests.test_fixtures imports)
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tests.test_fixtures.cache_factory import CacheTestFactory, FakeRedisClient  # noqa: E402
from tests.test_fixtures.provider_factory import ProviderTestFactory, RecordingConversationStore  # noqa: E402
from tutor_gateway.core.config.settings import Settings  # noqa: E402
from tutor_gateway.llm_stream.providers.registry import ProviderRegistry  # noqa: E402
from tutor_gateway.llm_stream.services.stream_orchestrator import StreamOrchestrator  # noqa: E402


# ============================================================================
# Pytest Configuration
# ============================================================================

# pytest-asyncio runs in auto mode (see pyproject.toml), so async tests and
# async fixtures need no explicit marker.


# ============================================================================
# Configuration Fixtures
# ============================================================================

TEST_SETTINGS_DEFAULTS = {
    "ENVIRONMENT": "test",
    "LOG_LEVEL": "DEBUG",
    "LOG_FORMAT": "console",
    "OPENAI_API_KEY": None,
    "ANTHROPIC_API_KEY": None,
    "GEMINI_API_KEY": None,
    "CACHE_REDIS_URL": None,
    "GATEWAY_TIMEOUT_SECONDS": 5.0,
    "GATEWAY_MAX_RETRIES": 1,
    "GATEWAY_BACKOFF_BASE_SECONDS": 1.0,
    "CACHE_REPLAY_DELAY_MS": 0,
}


@pytest.fixture
def settings_factory():
    """
    Build isolated Settings instances.

    No .env file is read and vendor credentials default to absent, so the
    developer's environment never leaks into a test.
    """

    def _build(**overrides) -> Settings:
        values = {**TEST_SETTINGS_DEFAULTS, **overrides}
        return Settings(_env_file=None, **values)

    return _build


@pytest.fixture
def test_settings(settings_factory) -> Settings:
    return settings_factory()


# ============================================================================
# Cache Fixtures
# ============================================================================


@pytest.fixture
async def response_cache(test_settings):
    """In-memory response cache, initialized and closed around the test."""
    cache = CacheTestFactory.memory_cache(test_settings)
    await cache.initialize()
    yield cache
    await cache.close()


@pytest.fixture
def fake_redis() -> FakeRedisClient:
    return FakeRedisClient()


# ============================================================================
# Provider / Orchestrator Fixtures
# ============================================================================


@pytest.fixture
def provider_factory() -> type[ProviderTestFactory]:
    return ProviderTestFactory


@pytest.fixture
def recorded_sleep() -> AsyncMock:
    """Backoff sleep that records its delays instead of waiting."""
    return AsyncMock(return_value=None)


@pytest.fixture
def make_orchestrator(test_settings, response_cache, recorded_sleep):
    """
    Build a StreamOrchestrator over the given providers.

    Usage:
        orchestrator = make_orchestrator(provider)
        orchestrator = make_orchestrator(settings=custom_settings)
    """

    def _build(*providers, settings: Settings | None = None, cache=None) -> StreamOrchestrator:
        return StreamOrchestrator(
            ProviderRegistry(providers),
            cache or response_cache,
            settings or test_settings,
            sleep=recorded_sleep,
        )

    return _build


@pytest.fixture
def conversation_store() -> RecordingConversationStore:
    return RecordingConversationStore()
