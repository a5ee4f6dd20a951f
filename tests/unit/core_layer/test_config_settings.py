"""
Unit Tests for Configuration Settings

Tests environment aliases, validators and the section views.
"""

import pytest
from pydantic import ValidationError

from tutor_gateway.core.config import constants
from tutor_gateway.core.config.settings import Settings, get_settings, reload_settings


@pytest.fixture
def clean_env(monkeypatch):
    """Remove credential and cache variables that would shadow the test values."""
    for name in (
        "GEMINI_API_KEY",
        "GOOGLE_API_KEY",
        "CACHE_REDIS_URL",
        "REDIS_URL",
        "AI_PROVIDER",
        "GATEWAY_MAX_RETRIES",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.mark.unit
class TestSettingsDefaults:
    """Test default values."""

    def test_gateway_defaults(self, clean_env):
        settings = Settings(_env_file=None)

        assert settings.GATEWAY_MAX_RETRIES == 1
        assert settings.GATEWAY_TIMEOUT_SECONDS == 30.0
        assert settings.GATEWAY_BACKOFF_BASE_SECONDS == 1.0

    def test_cache_defaults(self, clean_env):
        settings = Settings(_env_file=None)

        assert settings.CACHE_NAMESPACE == "tutor:ai"
        assert settings.CACHE_TTL_SECONDS == 7 * 24 * 60 * 60
        assert settings.CACHE_MIN_ANSWER_LENGTH == 30
        assert settings.CACHE_REPLAY_CHUNK_SIZE == 10


@pytest.mark.unit
class TestSettingsAliases:
    """Test legacy environment variable names."""

    def test_google_api_key_populates_gemini_key(self, clean_env):
        clean_env.setenv("GOOGLE_API_KEY", "AIza-test")
        settings = Settings(_env_file=None)
        assert settings.GEMINI_API_KEY == "AIza-test"
        assert settings.llm.GEMINI_API_KEY == "AIza-test"

    def test_redis_url_populates_cache_url(self, clean_env):
        clean_env.setenv("REDIS_URL", "redis://cache:6379/0")
        settings = Settings(_env_file=None)
        assert settings.CACHE_REDIS_URL == "redis://cache:6379/0"
        assert settings.cache.CACHE_REDIS_URL == "redis://cache:6379/0"

    def test_field_names_accepted_as_keywords(self, clean_env):
        settings = Settings(_env_file=None, GEMINI_API_KEY="key", CACHE_REDIS_URL="redis://x")
        assert settings.GEMINI_API_KEY == "key"
        assert settings.CACHE_REDIS_URL == "redis://x"


@pytest.mark.unit
class TestSettingsValidation:
    """Test validators."""

    def test_log_level_is_upper_cased(self, clean_env):
        assert Settings(_env_file=None, LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_rejected(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, LOG_LEVEL="verbose")

    def test_provider_name_normalized(self, clean_env):
        assert Settings(_env_file=None, AI_PROVIDER="  OpenAI ").AI_PROVIDER == "openai"

    def test_negative_retries_rejected(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, GATEWAY_MAX_RETRIES=-1)

    def test_non_positive_timeout_rejected(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, GATEWAY_TIMEOUT_SECONDS=0)

    def test_zero_replay_chunk_rejected(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, CACHE_REPLAY_CHUNK_SIZE=0)


@pytest.mark.unit
class TestSettingsSections:
    """Test grouped section views."""

    def test_sections_mirror_flat_fields(self, test_settings):
        assert test_settings.gateway.GATEWAY_MAX_RETRIES == test_settings.GATEWAY_MAX_RETRIES
        assert test_settings.cache.CACHE_REPLAY_DELAY_MS == 0
        assert test_settings.logging.LOG_FORMAT == "console"
        assert test_settings.app.ENVIRONMENT == "test"
        assert test_settings.llm.AI_TEMPERATURE == constants.DEFAULT_TEMPERATURE


@pytest.mark.unit
class TestConstants:
    """Test gateway limits that other modules rely on."""

    def test_temperature_range(self):
        assert constants.TEMPERATURE_MIN == 0.2
        assert constants.TEMPERATURE_MAX == 0.5
        assert constants.TEMPERATURE_MIN <= constants.DEFAULT_TEMPERATURE <= constants.TEMPERATURE_MAX

    def test_fallback_kinds(self):
        assert constants.FALLBACK_ERROR_KINDS == {
            constants.ErrorKind.NO_PROVIDER_AVAILABLE,
            constants.ErrorKind.EMPTY_RESPONSE,
        }

    def test_provider_aliases_point_at_canonical_names(self):
        canonical = {p.value for p in constants.LLMProvider}
        assert set(constants.PROVIDER_ALIASES.values()) <= canonical


@pytest.mark.unit
class TestSettingsSingleton:
    def test_get_settings_is_cached(self, clean_env):
        assert get_settings() is get_settings()

    def test_reload_replaces_instance(self, clean_env):
        first = get_settings()
        clean_env.setenv("GATEWAY_MAX_RETRIES", "3")

        reloaded = reload_settings()

        assert reloaded is not first
        assert reloaded.GATEWAY_MAX_RETRIES == 3
        assert get_settings() is reloaded

        clean_env.delenv("GATEWAY_MAX_RETRIES")
        reload_settings()
