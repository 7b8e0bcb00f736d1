"""LLM package exports.

Exposes:
- `LangChainModelProvider`: model plugin loadable as ``[plugins."shard.llm"]``
- `create_plugin`: plugin factory used by the plugin loader
- `LLMModelFactory`: model factory and cache
- `ModelConfig`: provider-agnostic model configuration
- `BaseLLMProvider`: provider interface
"""

from .factory import LLMModelFactory
from .plugin import LangChainModelProvider, create_plugin
from .providers import BaseLLMProvider, ModelConfig

__all__ = [
    "BaseLLMProvider",
    "LLMModelFactory",
    "LangChainModelProvider",
    "ModelConfig",
    "create_plugin",
]
