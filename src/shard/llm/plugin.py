"""Model provider plugin backed by LangChain chat models.

Declared in the runtime configuration like any other plugin package::

    [plugins."shard.llm"]
    provider = "anthropic"
    model = "claude-sonnet-4-20250514"
    maxTokens = 2048

The table may also be keyed ``shard.llm:create_plugin`` or by a submodule.
Multiple instances read their own entry from the ``instances`` list, layered
over the shared keys of the table.
"""

import dataclasses
from typing import Any, AsyncIterator, Dict, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.runnables import Runnable

from ..base.loggable import Loggable
from ..core.types import ChatChunk, ChatRequest, ChatResponse, ModelInfo
from ..plugins.base import ModelProvider, PluginContext
from .factory import LLMModelFactory
from .messages import (
    finish_reason_for,
    from_ai_message,
    text_content,
    to_langchain_messages,
    to_openai_tool,
    usage_from_message,
)
from .providers import ModelConfig

PACKAGE_NAME = "shard.llm"


def find_plugin_table(plugins: Any) -> Any:
    """Return the ``plugins`` entry that declares this module.

    Matches the bare package key as well as ``shard.llm:attr`` and submodule
    keys such as ``shard.llm.plugin``.
    """
    if not isinstance(plugins, dict):
        return {}
    for key, table in plugins.items():
        module = key.split(":", 1)[0]
        if module == PACKAGE_NAME or module.startswith(f"{PACKAGE_NAME}."):
            return table
    return {}


class LangChainModelProvider(ModelProvider, Loggable):
    """`ModelProvider` that serves chat requests through LangChain.

    Args:
        factory: Model factory override; built from ``Settings`` during
            ``init`` when omitted.
    """

    name = "langchain"
    version = "0.1.0"

    def __init__(self, factory: Optional[LLMModelFactory] = None):
        super().__init__()
        self.factory = factory
        self.model_config: Optional[ModelConfig] = None

    async def init(self, context: PluginContext) -> None:
        if self.factory is None:
            self.factory = LLMModelFactory()
        values = self._plugin_values(context)
        self.model_config = ModelConfig.from_plugin_config(
            values, default_provider=self.factory.settings.default_llm_provider
        )
        context.logger.info(
            f"{self.name}: using {self.model_config.provider}/{self.model_config.model_name}"
        )

    def _plugin_values(self, context: PluginContext) -> Dict[str, Any]:
        table = find_plugin_table(context.config.get("plugins", {}))
        if not isinstance(table, dict):
            return {}
        values = {key: value for key, value in table.items() if key != "instances"}
        if self.instance_id is not None:
            for entry in table.get("instances") or []:
                if isinstance(entry, dict) and entry.get("instanceId") == self.instance_id:
                    values.update(entry)
                    break
        return values

    async def destroy(self) -> None:
        if self.factory is not None:
            self.factory.clear_cache()
        self.model_config = None

    def _request_config(self, request: ChatRequest) -> ModelConfig:
        if self.model_config is None:
            raise RuntimeError(f"{self.name} is not initialized")
        overrides: Dict[str, Any] = {}
        if request.model:
            overrides["model_name"] = request.model
        if request.temperature is not None:
            overrides["temperature"] = request.temperature
        if request.max_tokens is not None:
            overrides["max_tokens"] = request.max_tokens
        return dataclasses.replace(self.model_config, **overrides)

    def _runnable(self, request: ChatRequest) -> Runnable:
        config = self._request_config(request)
        model: BaseChatModel = self.factory.create_base_model(config)
        if request.tools:
            return self.factory.bind_tools(
                config, model, [to_openai_tool(tool) for tool in request.tools]
            )
        return model

    async def chat(self, request: ChatRequest) -> ChatResponse:
        runnable = self._runnable(request)
        reply = await runnable.ainvoke(to_langchain_messages(request.messages))
        return ChatResponse(
            message=from_ai_message(reply),
            usage=usage_from_message(reply),
            finish_reason=finish_reason_for(reply),
        )

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[ChatChunk]:
        """Yield text deltas, then one final chunk with tool calls and usage."""
        runnable = self._runnable(request)
        aggregate = None
        async for chunk in runnable.astream(to_langchain_messages(request.messages)):
            aggregate = chunk if aggregate is None else aggregate + chunk
            delta = text_content(chunk.content)
            if delta:
                yield ChatChunk(delta=delta)

        if aggregate is None:
            yield ChatChunk(finish_reason="stop")
            return
        yield ChatChunk(
            tool_calls=from_ai_message(aggregate).tool_calls,
            usage=usage_from_message(aggregate),
            finish_reason=finish_reason_for(aggregate),
        )

    async def list_models(self) -> List[ModelInfo]:
        if self.model_config is None:
            return []
        return [
            ModelInfo(
                id=self.model_config.model_name,
                name=f"{self.model_config.provider}/{self.model_config.model_name}",
                max_output_tokens=self.model_config.max_tokens,
            )
        ]


def create_plugin() -> LangChainModelProvider:
    return LangChainModelProvider()
