"""Provider interfaces and implementations for LangChain chat models.

Includes:
- ``ModelConfig`` dataclass describing one model, buildable from a plugin's
  configuration table.
- ``BaseLLMProvider`` abstract interface.
- Concrete providers for OpenAI (and OpenAI-compatible endpoints),
  Anthropic/Claude, and Google/Gemini.

Provider packages (``langchain-openai``, ``langchain-anthropic``,
``langchain-google-genai``) are optional extras, imported when a provider
first builds a model; a missing package surfaces as an ``ImportError`` with
install instructions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.runnables import Runnable

DEFAULT_MODELS = {
    "openai": "gpt-4o",
    "anthropic": "claude-sonnet-4-20250514",
    "claude": "claude-sonnet-4-20250514",
    "google": "gemini-2.0-flash",
    "gemini": "gemini-2.0-flash",
}


@dataclass
class ModelConfig:
    """Configuration for constructing and tuning chat models.

    Fields:
    - provider: Provider key (e.g., "openai", "anthropic", "google").
    - model_name: Provider-specific model identifier.
    - temperature: Sampling temperature.
    - max_tokens: Maximum tokens to generate.
    - api_key: API key for provider (may be resolved from settings).
    - base_url: Endpoint override for OpenAI-compatible servers.
    - additional_params: Extra provider-specific parameters.
    """

    provider: str
    model_name: str
    temperature: float = 0.7
    max_tokens: int = 1024
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    additional_params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_plugin_config(
        cls, values: Mapping[str, Any], default_provider: str = "openai"
    ) -> "ModelConfig":
        """Build a config from a ``plugins."shard.llm"`` table or instance entry.

        Recognized keys: ``provider``, ``model``, ``temperature``,
        ``maxTokens``, ``apiKey``, ``baseUrl`` and ``params`` (a table passed
        straight to the LangChain model).
        """
        provider = str(values.get("provider") or default_provider)
        return cls(
            provider=provider,
            model_name=str(values.get("model") or DEFAULT_MODELS.get(provider, "")),
            temperature=float(values.get("temperature", 0.7)),
            max_tokens=int(values.get("maxTokens", 1024)),
            api_key=values.get("apiKey") or None,
            base_url=values.get("baseUrl") or None,
            additional_params=dict(values.get("params") or {}),
        )


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def create_model(self, config: ModelConfig) -> BaseChatModel:
        """Create a provider-specific chat model."""

    def bind_tools(
        self, model: BaseChatModel, tools: List[Dict[str, Any]]
    ) -> Runnable:
        """Bind OpenAI-format tool schemas to ``model``."""
        return model.bind_tools(tools)


class OpenAIProvider(BaseLLMProvider):
    """OpenAI and OpenAI-compatible endpoints."""

    def create_model(self, config: ModelConfig) -> BaseChatModel:
        """Create an OpenAI chat model.

        Raises:
            ImportError: If ``langchain-openai`` is not installed.
        """
        try:
            from langchain_openai import ChatOpenAI
        except ImportError as e:
            raise ImportError(
                "langchain-openai is not installed. Install with: pip install langchain-openai"
            ) from e

        params = dict(config.additional_params)
        api_key = config.api_key
        if config.base_url:
            params["base_url"] = config.base_url
            # local compatible servers accept any key but the client requires one
            api_key = api_key or "not-needed"
        return ChatOpenAI(
            model=config.model_name,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            api_key=api_key,
            **params,
        )


class AnthropicProvider(BaseLLMProvider):
    """Anthropic (Claude) provider implementation."""

    def create_model(self, config: ModelConfig) -> BaseChatModel:
        """Create an Anthropic (Claude) chat model.

        Raises:
            ImportError: If ``langchain-anthropic`` is not installed.
        """
        try:
            from langchain_anthropic import ChatAnthropic
        except ImportError as e:
            raise ImportError(
                "langchain-anthropic is not installed. Install with: pip install langchain-anthropic"
            ) from e

        return ChatAnthropic(
            model=config.model_name,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            api_key=config.api_key,
            **config.additional_params,
        )


class GoogleGenAIProvider(BaseLLMProvider):
    """Google Generative AI (Gemini) provider implementation."""

    def create_model(self, config: ModelConfig) -> BaseChatModel:
        """Create a Google Generative AI (Gemini) chat model.

        Raises:
            ImportError: If ``langchain-google-genai`` is not installed.
        """
        try:
            from langchain_google_genai import ChatGoogleGenerativeAI
        except ImportError as e:
            raise ImportError(
                "langchain-google-genai is not installed. Install with: pip install langchain-google-genai"
            ) from e

        return ChatGoogleGenerativeAI(
            model=config.model_name,
            temperature=config.temperature,
            max_output_tokens=config.max_tokens,
            google_api_key=config.api_key,
            **config.additional_params,
        )
