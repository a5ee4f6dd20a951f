"""
Provider Registry

Holds the configured provider clients keyed by canonical lowercase name.
One registry is constructed at application bootstrap and handed to the
orchestrator; there is no module-level instance.

Architectural Decision: Credential presence toggles a vendor on
- configure() registers every vendor whose API key is set
- An empty registry is logged, not fatal; callers treat "no provider"
  as a normal outcome and fall back to deterministic content
"""

from collections.abc import Iterable

import httpx

from tutor_gateway.core.config.constants import PROVIDER_ALIASES, LLMProvider
from tutor_gateway.core.config.settings import Settings, get_settings
from tutor_gateway.core.logging.logger import get_logger
from tutor_gateway.llm_stream.providers.anthropic_provider import AnthropicProvider
from tutor_gateway.llm_stream.providers.base_provider import BaseProvider, ProviderConfig
from tutor_gateway.llm_stream.providers.gemini_provider import GeminiProvider
from tutor_gateway.llm_stream.providers.openai_provider import OpenAIProvider

logger = get_logger(__name__)


def canonical_name(name: str | None) -> str | None:
    if not name:
        return None
    key = name.strip().lower()
    return PROVIDER_ALIASES.get(key, key)


class ProviderRegistry:
    """
    Registry of provider clients.

    STAGE-3: Provider selection

    Usage:
        registry = ProviderRegistry().configure(settings)
        provider = registry.resolve("OpenAI") or registry.get_default()
    """

    def __init__(self, providers: Iterable[BaseProvider] = (), default: str | None = None):
        self._providers: dict[str, BaseProvider] = {}
        self._default_name: str | None = None
        for provider in providers:
            self.register(provider)
        if default is not None:
            self.set_default(default)

    def register(self, provider: BaseProvider) -> None:
        name = canonical_name(provider.name)
        self._providers[name] = provider
        if self._default_name is None:
            self._default_name = name
        logger.info("Registered provider", stage="3.1", provider=name, model=provider.identity.display_model)

    def set_default(self, name: str) -> None:
        self._default_name = canonical_name(name)

    def configure(
        self, settings: Settings | None = None, http_client: httpx.AsyncClient | None = None
    ) -> "ProviderRegistry":
        """
        Register every vendor whose credential is present.

        STAGE-3.0: Provider registration (once, at startup)

        The default is AI_PROVIDER when that vendor is registered, otherwise
        the first registered vendor.
        """
        llm = (settings or get_settings()).llm

        candidates = [
            (
                OpenAIProvider,
                LLMProvider.OPENAI,
                llm.OPENAI_API_KEY,
                llm.OPENAI_BASE_URL,
                llm.OPENAI_MODEL,
                llm.OPENAI_FALLBACK_MODEL,
            ),
            (
                AnthropicProvider,
                LLMProvider.ANTHROPIC,
                llm.ANTHROPIC_API_KEY,
                llm.ANTHROPIC_BASE_URL,
                llm.ANTHROPIC_MODEL,
                llm.ANTHROPIC_FALLBACK_MODEL,
            ),
            (
                GeminiProvider,
                LLMProvider.GOOGLE,
                llm.GEMINI_API_KEY,
                llm.GEMINI_BASE_URL,
                llm.GEMINI_MODEL,
                llm.GEMINI_FALLBACK_MODEL,
            ),
        ]

        for provider_class, provider, api_key, base_url, model, fallback_model in candidates:
            if not api_key:
                logger.debug("Provider credential absent, skipping", stage="3.0", provider=provider.value)
                continue
            config = ProviderConfig(
                name=provider.value,
                api_key=api_key,
                base_url=base_url,
                default_model=model,
                fallback_model=fallback_model,
                max_tokens=llm.AI_MAX_TOKENS,
                timeout=llm.PROVIDER_HTTP_TIMEOUT,
            )
            self.register(provider_class(config, http_client=http_client))

        preferred = canonical_name(llm.AI_PROVIDER)
        if preferred in self._providers:
            self._default_name = preferred

        if not self._providers:
            logger.warning(
                "No LLM providers configured; answers will use deterministic fallback",
                stage="3.0",
            )
        else:
            logger.info(
                "Provider registry configured",
                stage="3.0",
                providers=sorted(self._providers),
                default=self._default_name,
            )
        return self

    def resolve(self, name: str | None) -> BaseProvider | None:
        """Case-insensitive lookup; None when the name is not registered."""
        key = canonical_name(name)
        if key is None:
            return None
        return self._providers.get(key)

    def get_default(self) -> BaseProvider | None:
        if self._default_name is None:
            return None
        return self._providers.get(self._default_name)

    @property
    def default_name(self) -> str | None:
        return self._default_name if self._default_name in self._providers else None

    def list_available(self) -> set[str]:
        return set(self._providers)

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()
