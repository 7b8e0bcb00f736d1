"""Factory utilities for creating and managing chat models.

Provides:
- Caching of model instances via ``ModelCacheManager``.
- Provider management via ``ProviderRegistry`` (OpenAI, Anthropic/Claude, Google/Gemini).
- Integration with ``Settings`` for resolving API keys.
- Binding of OpenAI-format tool schemas for tool-calling requests.
"""

from typing import Any, Dict, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.runnables import Runnable

from ..base.loggable import Loggable
from ..config.settings import Settings
from .providers import (
    AnthropicProvider,
    BaseLLMProvider,
    GoogleGenAIProvider,
    ModelConfig,
    OpenAIProvider,
)


class ModelCacheManager(Loggable):
    """Manage cached ``BaseChatModel`` instances.

    Requests with the same provider, model, temperature, token limit and
    endpoint reuse one client.
    """

    def __init__(self):
        super().__init__()
        self._cache: Dict[str, BaseChatModel] = {}

    @staticmethod
    def get_cache_key(config: ModelConfig) -> str:
        """Return the cache key for a model configuration."""
        return (
            f"{config.provider}:{config.model_name}:{config.temperature}"
            f":{config.max_tokens}:{config.base_url or ''}"
        )

    def get_cached_model(self, cache_key: str) -> Optional[BaseChatModel]:
        return self._cache.get(cache_key)

    def cache_model(self, cache_key: str, model: BaseChatModel) -> None:
        self._cache[cache_key] = model
        self.logger.debug(f"Cached model: {cache_key}")

    def clear_cache(self) -> None:
        """Clear all cached models."""
        self._cache.clear()
        self.logger.info("Cleared model cache")

    def get_cache_stats(self) -> Dict[str, int]:
        return {"cached_models": len(self._cache)}


class ProviderRegistry(Loggable):
    """Registry for managing LLM providers.

    Pre-registers OpenAI, Anthropic (aliased as ``"anthropic"`` and
    ``"claude"``), and Google GenAI (aliased as ``"google"`` and
    ``"gemini"``).
    """

    def __init__(self):
        super().__init__()
        self._providers: Dict[str, BaseLLMProvider] = {
            "openai": OpenAIProvider(),
            "anthropic": AnthropicProvider(),
            "claude": AnthropicProvider(),
            "google": GoogleGenAIProvider(),
            "gemini": GoogleGenAIProvider(),
        }

    def get_provider(self, provider_name: str) -> Optional[BaseLLMProvider]:
        return self._providers.get(provider_name)

    def register_provider(self, name: str, provider: BaseLLMProvider) -> None:
        """Register a new provider.

        Args:
            name: Provider name under which it will be registered.
            provider: Concrete ``BaseLLMProvider`` implementation.
        """
        self._providers[name] = provider
        self.logger.info(f"Registered provider: {name}")

    def get_available_providers(self) -> List[str]:
        return list(self._providers.keys())

    def is_provider_available(self, provider_name: str) -> bool:
        return provider_name in self._providers


class LLMModelFactory(Loggable):
    """Create and manage chat models with provider and cache handling.

    Responsibilities:
    - Resolve provider credentials from ``Settings`` when missing in ``ModelConfig``.
    - Cache constructed models to avoid redundant instantiation.
    - Bind tool schemas for tool-calling requests.
    """

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__()
        self.settings = settings or Settings()
        self.cache_manager = ModelCacheManager()
        self.provider_registry = ProviderRegistry()

    def create_base_model(self, config: ModelConfig) -> BaseChatModel:
        """Create (or reuse) a model without tools.

        Args:
            config: Model configuration (provider, model, temperature, etc.).

        Returns:
            A provider-specific ``BaseChatModel`` instance.

        Raises:
            ValueError: If the provider is unknown or credentials are missing.
        """
        provider = self._get_provider(config.provider)

        cache_key = self.cache_manager.get_cache_key(config)
        cached_model = self.cache_manager.get_cached_model(cache_key)
        if cached_model is not None:
            return cached_model

        self._ensure_api_key(config)

        model = provider.create_model(config)
        self.cache_manager.cache_model(cache_key, model)
        self.logger.info(f"Created model: {config.provider}/{config.model_name}")
        return model

    def bind_tools(
        self, config: ModelConfig, model: BaseChatModel, tools: List[Dict[str, Any]]
    ) -> Runnable:
        """Return ``model`` with ``tools`` (OpenAI function format) bound."""
        return self._get_provider(config.provider).bind_tools(model, tools)

    def _get_provider(self, name: str) -> BaseLLMProvider:
        provider = self.provider_registry.get_provider(name)
        if provider is None:
            raise ValueError(f"Unknown provider: {name}")
        return provider

    def _ensure_api_key(self, config: ModelConfig) -> None:
        """Ensure an API key is present in the configuration.

        If ``config.api_key`` is empty, resolve it via ``Settings``. Endpoints
        with a ``base_url`` (local OpenAI-compatible servers) may run keyless.
        """
        if config.api_key:
            return
        config.api_key = self.settings.get_api_key_for_provider(config.provider)
        if not config.api_key and not config.base_url:
            raise ValueError(f"No API key found for provider: {config.provider}")

    def get_available_providers(self) -> List[str]:
        return self.provider_registry.get_available_providers()

    def clear_cache(self) -> None:
        self.cache_manager.clear_cache()

    def get_cache_stats(self) -> Dict[str, int]:
        return self.cache_manager.get_cache_stats()

    def register_provider(self, name: str, provider: BaseLLMProvider) -> None:
        self.provider_registry.register_provider(name, provider)
