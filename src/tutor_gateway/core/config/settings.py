#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
tutor LLM gateway. Configuration is read once at startup; every component
receives the sections it needs from here.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Vendor credential presence toggles the vendor on
- Easy testing with override mechanisms

Author: System Architect
Date: 2025-12-05
"""

from typing import Literal

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tutor_gateway.core.config import constants


class LLMProviderSettings(BaseSettings):
    """
    LLM Provider API configurations.

    STAGE-0.1: LLM provider configuration

    Supports: OpenAI, Anthropic, Google Gemini
    """

    # OpenAI
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_MODEL: str = Field(default="gpt-4o", description="OpenAI chat model")
    OPENAI_FALLBACK_MODEL: str | None = Field(default="gpt-4o-mini", description="Model used after a 404")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1", description="OpenAI base URL")

    # Anthropic
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")
    ANTHROPIC_MODEL: str = Field(default="claude-3-5-sonnet-latest", description="Anthropic model")
    ANTHROPIC_FALLBACK_MODEL: str | None = Field(
        default="claude-3-5-haiku-latest", description="Model used after a 404"
    )
    ANTHROPIC_BASE_URL: str = Field(default="https://api.anthropic.com", description="Anthropic base URL")

    # Google Gemini
    GEMINI_API_KEY: str | None = Field(default=None, description="Google Gemini API key")
    GEMINI_MODEL: str = Field(default="gemini-1.5-pro", description="Gemini model")
    GEMINI_FALLBACK_MODEL: str | None = Field(default="gemini-1.5-flash", description="Model used after a 404")
    GEMINI_BASE_URL: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini base URL (API version included)"
    )

    # Shared
    AI_PROVIDER: str = Field(default="google", description="Default provider name")
    AI_TEMPERATURE: float = Field(default=constants.DEFAULT_TEMPERATURE, description="Sampling temperature")
    AI_MAX_TOKENS: int = Field(default=2048, description="Max output tokens per answer")
    PROVIDER_HTTP_TIMEOUT: float = Field(
        default=60.0, description="Transport timeout; the gateway deadline is the real bound"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Response cache configuration.

    STAGE-C: Cache backend selection and TTLs

    Architectural Decision: Redis when a URL is configured, bounded
    in-memory LRU otherwise (selected once at construction).
    """

    CACHE_REDIS_URL: str | None = Field(default=None, description="Durable cache connection string")
    CACHE_NAMESPACE: str = Field(default=constants.CACHE_NAMESPACE, description="Key prefix")
    CACHE_TTL_SECONDS: int = Field(default=constants.CACHE_TTL_SECONDS, description="Entry TTL (7 days)")
    CACHE_MEMORY_MAX_SIZE: int = Field(
        default=constants.CACHE_MEMORY_MAX_SIZE, description="In-memory store max entries"
    )
    CACHE_MIN_ANSWER_LENGTH: int = Field(
        default=constants.CACHE_MIN_ANSWER_LENGTH, description="Shorter answers are not cached"
    )
    CACHE_REPLAY_CHUNK_SIZE: int = Field(
        default=constants.CACHE_REPLAY_CHUNK_SIZE, description="Characters per replayed token"
    )
    CACHE_REPLAY_DELAY_MS: int = Field(
        default=constants.CACHE_REPLAY_DELAY_MS, description="Delay between replayed tokens"
    )
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class GatewaySettings(BaseSettings):
    """
    Retry and deadline configuration for the stream orchestrator.

    STAGE-R: Retry/backoff thresholds
    """

    GATEWAY_TIMEOUT_SECONDS: float = Field(
        default=constants.GATEWAY_TIMEOUT, description="Per-attempt wall-clock deadline"
    )
    GATEWAY_MAX_RETRIES: int = Field(default=constants.DEFAULT_MAX_RETRIES, description="Retries after the first attempt")
    GATEWAY_BACKOFF_BASE_SECONDS: float = Field(
        default=constants.RETRY_BASE_DELAY, description="Backoff base, doubled per attempt"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration

    Architectural Decision: structlog for production-grade logging
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Tutor LLM Gateway", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    # API settings
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    API_BASE_PATH: str = Field(default="/api/v1", description="Prefix for all API routes")

    # CORS settings
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from tutor_gateway.core.config.settings import get_settings

        settings = get_settings()
        openai_key = settings.llm.OPENAI_API_KEY
        redis_url = settings.cache.CACHE_REDIS_URL
    """

    # LLM Provider settings
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_MODEL: str = Field(default="gpt-4o", description="OpenAI chat model")
    OPENAI_FALLBACK_MODEL: str | None = Field(default="gpt-4o-mini", description="Model used after a 404")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1", description="OpenAI base URL")

    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")
    ANTHROPIC_MODEL: str = Field(default="claude-3-5-sonnet-latest", description="Anthropic model")
    ANTHROPIC_FALLBACK_MODEL: str | None = Field(
        default="claude-3-5-haiku-latest", description="Model used after a 404"
    )
    ANTHROPIC_BASE_URL: str = Field(default="https://api.anthropic.com", description="Anthropic base URL")

    GEMINI_API_KEY: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_API_KEY"),
        description="Google Gemini API key"
    )
    GEMINI_MODEL: str = Field(default="gemini-1.5-pro", description="Gemini model")
    GEMINI_FALLBACK_MODEL: str | None = Field(default="gemini-1.5-flash", description="Model used after a 404")
    GEMINI_BASE_URL: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini base URL (API version included)"
    )

    AI_PROVIDER: str = Field(default="google", description="Default provider name")
    AI_TEMPERATURE: float = Field(default=constants.DEFAULT_TEMPERATURE, description="Sampling temperature")
    AI_MAX_TOKENS: int = Field(default=2048, description="Max output tokens per answer")
    PROVIDER_HTTP_TIMEOUT: float = Field(default=60.0, description="Transport timeout (safety net)")

    # Cache settings
    CACHE_REDIS_URL: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CACHE_REDIS_URL", "REDIS_URL"),
        description="Durable cache connection string"
    )
    CACHE_NAMESPACE: str = Field(default=constants.CACHE_NAMESPACE, description="Key prefix")
    CACHE_TTL_SECONDS: int = Field(default=constants.CACHE_TTL_SECONDS, description="Entry TTL (7 days)")
    CACHE_MEMORY_MAX_SIZE: int = Field(default=constants.CACHE_MEMORY_MAX_SIZE, description="In-memory max entries")
    CACHE_MIN_ANSWER_LENGTH: int = Field(default=constants.CACHE_MIN_ANSWER_LENGTH, description="Min cached length")
    CACHE_REPLAY_CHUNK_SIZE: int = Field(default=constants.CACHE_REPLAY_CHUNK_SIZE, description="Replay chunk size")
    CACHE_REPLAY_DELAY_MS: int = Field(default=constants.CACHE_REPLAY_DELAY_MS, description="Replay delay")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")

    # Gateway settings
    GATEWAY_TIMEOUT_SECONDS: float = Field(default=constants.GATEWAY_TIMEOUT, description="Per-attempt deadline")
    GATEWAY_MAX_RETRIES: int = Field(default=constants.DEFAULT_MAX_RETRIES, description="Retries after first attempt")
    GATEWAY_BACKOFF_BASE_SECONDS: float = Field(default=constants.RETRY_BASE_DELAY, description="Backoff base")

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Tutor LLM Gateway", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    API_BASE_PATH: str = Field(default="/api/v1", description="Prefix for all API routes")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("AI_PROVIDER")
    @classmethod
    def normalize_provider(cls, v):
        """Provider names are matched case-insensitively."""
        return v.strip().lower()

    @model_validator(mode="after")
    def validate_gateway_limits(self):
        """Fail fast on limits the gateway cannot honour."""
        if self.GATEWAY_MAX_RETRIES < 0:
            raise ValueError("GATEWAY_MAX_RETRIES must be >= 0")
        if self.GATEWAY_TIMEOUT_SECONDS <= 0:
            raise ValueError("GATEWAY_TIMEOUT_SECONDS must be > 0")
        if self.CACHE_REPLAY_CHUNK_SIZE < 1:
            raise ValueError("CACHE_REPLAY_CHUNK_SIZE must be >= 1")
        return self

    # Nested configuration sections
    @property
    def llm(self) -> "LLMProviderSettings":
        """Get LLM provider settings."""
        return LLMProviderSettings(
            OPENAI_API_KEY=self.OPENAI_API_KEY,
            OPENAI_MODEL=self.OPENAI_MODEL,
            OPENAI_FALLBACK_MODEL=self.OPENAI_FALLBACK_MODEL,
            OPENAI_BASE_URL=self.OPENAI_BASE_URL,
            ANTHROPIC_API_KEY=self.ANTHROPIC_API_KEY,
            ANTHROPIC_MODEL=self.ANTHROPIC_MODEL,
            ANTHROPIC_FALLBACK_MODEL=self.ANTHROPIC_FALLBACK_MODEL,
            ANTHROPIC_BASE_URL=self.ANTHROPIC_BASE_URL,
            GEMINI_API_KEY=self.GEMINI_API_KEY,
            GEMINI_MODEL=self.GEMINI_MODEL,
            GEMINI_FALLBACK_MODEL=self.GEMINI_FALLBACK_MODEL,
            GEMINI_BASE_URL=self.GEMINI_BASE_URL,
            AI_PROVIDER=self.AI_PROVIDER,
            AI_TEMPERATURE=self.AI_TEMPERATURE,
            AI_MAX_TOKENS=self.AI_MAX_TOKENS,
            PROVIDER_HTTP_TIMEOUT=self.PROVIDER_HTTP_TIMEOUT
        )

    @property
    def cache(self) -> "CacheSettings":
        """Get cache settings."""
        return CacheSettings(
            CACHE_REDIS_URL=self.CACHE_REDIS_URL,
            CACHE_NAMESPACE=self.CACHE_NAMESPACE,
            CACHE_TTL_SECONDS=self.CACHE_TTL_SECONDS,
            CACHE_MEMORY_MAX_SIZE=self.CACHE_MEMORY_MAX_SIZE,
            CACHE_MIN_ANSWER_LENGTH=self.CACHE_MIN_ANSWER_LENGTH,
            CACHE_REPLAY_CHUNK_SIZE=self.CACHE_REPLAY_CHUNK_SIZE,
            CACHE_REPLAY_DELAY_MS=self.CACHE_REPLAY_DELAY_MS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS
        )

    @property
    def gateway(self) -> "GatewaySettings":
        """Get gateway settings."""
        return GatewaySettings(
            GATEWAY_TIMEOUT_SECONDS=self.GATEWAY_TIMEOUT_SECONDS,
            GATEWAY_MAX_RETRIES=self.GATEWAY_MAX_RETRIES,
            GATEWAY_BACKOFF_BASE_SECONDS=self.GATEWAY_BACKOFF_BASE_SECONDS
        )

    @property
    def logging(self) -> "LoggingSettings":
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> "ApplicationSettings":
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
            API_BASE_PATH=self.API_BASE_PATH,
            CORS_ORIGINS=self.CORS_ORIGINS
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        populate_by_name=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.2: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
