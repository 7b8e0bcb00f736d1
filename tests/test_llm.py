"""Tests for the LangChain-backed model provider."""

import logging

import pytest
from langchain_core.messages import (
    AIMessage,
    AIMessageChunk,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from shard.config import Config, Settings
from shard.core.events import EventDispatcher
from shard.core.storage import NullStorage
from shard.core.types import (
    ChatMessage,
    ChatRequest,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)
from shard.llm import LangChainModelProvider, LLMModelFactory, ModelConfig
from shard.llm.messages import (
    finish_reason_for,
    from_ai_message,
    text_content,
    to_langchain_messages,
    to_openai_tool,
    usage_from_message,
)
from shard.llm.plugin import find_plugin_table
from shard.llm.providers import BaseLLMProvider
from shard.plugins.base import PluginContext


class FakeChatModel:
    def __init__(self, replies=None, chunks=None):
        self.replies = list(replies or [])
        self.chunks = list(chunks or [])
        self.inputs = []

    async def ainvoke(self, messages):
        self.inputs.append(messages)
        return self.replies.pop(0)

    async def astream(self, messages):
        self.inputs.append(messages)
        for chunk in self.chunks:
            yield chunk


class FakeFactory:
    def __init__(self, model):
        self.model = model
        self.settings = Settings(_env_file=None)
        self.configs = []
        self.bound_tools = None
        self.cleared = False

    def create_base_model(self, config):
        self.configs.append(config)
        return self.model

    def bind_tools(self, config, model, tools):
        self.bound_tools = tools
        return model

    def clear_cache(self):
        self.cleared = True


class FakeProvider(BaseLLMProvider):
    def __init__(self):
        self.created = []

    def create_model(self, config):
        self.created.append(config)
        return object()


def make_context(plugin_config):
    return PluginContext(
        config=Config({"plugins": {"shard.llm": plugin_config}}),
        logger=logging.getLogger("test.plugin"),
        events=EventDispatcher(),
        storage=NullStorage(),
    )


class TestMessageConversion:
    def test_roles_map_to_langchain_types(self):
        converted = to_langchain_messages(
            [
                ChatMessage(role="system", content="sys"),
                ChatMessage(role="user", content="hi"),
                ChatMessage(
                    role="assistant",
                    content="",
                    tool_calls=[ToolCall(id="c1", name="search", arguments={"q": "x"})],
                ),
                ChatMessage(role="tool", content="result", tool_call_id="c1"),
            ]
        )

        assert [type(m) for m in converted] == [
            SystemMessage,
            HumanMessage,
            AIMessage,
            ToolMessage,
        ]
        assert converted[2].tool_calls[0]["name"] == "search"
        assert converted[2].tool_calls[0]["args"] == {"q": "x"}
        assert converted[2].tool_calls[0]["id"] == "c1"
        assert converted[3].tool_call_id == "c1"

    def test_text_content_flattens_parts(self):
        assert text_content("plain") == "plain"
        assert text_content(None) == ""
        assert (
            text_content(["a", {"type": "text", "text": "b"}, {"type": "image_url"}])
            == "ab"
        )

    def test_from_ai_message_with_tool_calls(self):
        message = AIMessage(
            content="",
            tool_calls=[{"name": "search", "args": {"q": "x"}, "id": "call-9"}],
        )

        converted = from_ai_message(message)

        assert converted.role == "assistant"
        assert converted.tool_calls == [
            ToolCall(id="call-9", name="search", arguments={"q": "x"})
        ]
        assert finish_reason_for(message) == "tool_calls"

    def test_finish_reasons(self):
        assert finish_reason_for(AIMessage(content="x")) == "stop"
        assert (
            finish_reason_for(
                AIMessage(content="x", response_metadata={"finish_reason": "length"})
            )
            == "length"
        )
        assert (
            finish_reason_for(
                AIMessage(content="x", response_metadata={"stop_reason": "max_tokens"})
            )
            == "length"
        )

    def test_usage(self):
        message = AIMessage(
            content="x",
            usage_metadata={"input_tokens": 7, "output_tokens": 3, "total_tokens": 10},
        )
        assert usage_from_message(message) == TokenUsage(7, 3, 10)
        assert usage_from_message(AIMessage(content="x")) == TokenUsage()

    def test_openai_tool_schema(self):
        schema = to_openai_tool(
            ToolDefinition(
                name="search",
                description="Search",
                parameters={"type": "object", "properties": {"q": {"type": "string"}}},
            )
        )
        assert schema["type"] == "function"
        assert schema["function"]["name"] == "search"
        assert schema["function"]["parameters"]["properties"]["q"] == {"type": "string"}


class TestLangChainModelProvider:
    @pytest.mark.asyncio
    async def test_chat(self):
        model = FakeChatModel(
            replies=[
                AIMessage(
                    content="hello",
                    usage_metadata={
                        "input_tokens": 4,
                        "output_tokens": 1,
                        "total_tokens": 5,
                    },
                )
            ]
        )
        factory = FakeFactory(model)
        provider = LangChainModelProvider(factory=factory)
        await provider.init(make_context({"provider": "openai", "model": "gpt-4o"}))

        response = await provider.chat(
            ChatRequest(
                model="",
                messages=[ChatMessage(role="user", content="hi")],
                tools=[ToolDefinition(name="search", description="Search")],
            )
        )

        assert response.message.content == "hello"
        assert response.usage == TokenUsage(4, 1, 5)
        assert response.finish_reason == "stop"
        assert factory.configs[0].model_name == "gpt-4o"
        assert factory.bound_tools[0]["function"]["name"] == "search"
        assert isinstance(model.inputs[0][0], HumanMessage)

    @pytest.mark.asyncio
    async def test_request_overrides_model_settings(self):
        factory = FakeFactory(FakeChatModel(replies=[AIMessage(content="ok")]))
        provider = LangChainModelProvider(factory=factory)
        await provider.init(make_context({"model": "gpt-4o", "temperature": 0.2}))

        await provider.chat(
            ChatRequest(
                model="gpt-4o-mini",
                messages=[ChatMessage(role="user", content="hi")],
                temperature=0.9,
                max_tokens=50,
            )
        )

        config = factory.configs[0]
        assert (config.model_name, config.temperature, config.max_tokens) == (
            "gpt-4o-mini",
            0.9,
            50,
        )
        assert factory.bound_tools is None
        assert provider.model_config.model_name == "gpt-4o"

    @pytest.mark.asyncio
    async def test_instance_settings_override_shared_table(self):
        provider = LangChainModelProvider(factory=FakeFactory(FakeChatModel()))
        provider.instance_id = "claude"

        await provider.init(
            make_context(
                {
                    "temperature": 0.1,
                    "instances": [
                        {"instanceId": "gpt", "provider": "openai", "model": "gpt-4o"},
                        {"instanceId": "claude", "provider": "anthropic"},
                    ],
                }
            )
        )

        config = provider.model_config
        assert config.provider == "anthropic"
        assert config.model_name.startswith("claude")
        assert config.temperature == 0.1

    @pytest.mark.asyncio
    async def test_reads_table_declared_with_attribute_or_submodule(self):
        for key in ("shard.llm:create_plugin", "shard.llm.plugin"):
            provider = LangChainModelProvider(factory=FakeFactory(FakeChatModel()))
            context = PluginContext(
                config=Config(
                    {
                        "plugins": {
                            "shard.llmx": {"model": "wrong"},
                            key: {"provider": "anthropic", "model": "claude-x"},
                        }
                    }
                ),
                logger=logging.getLogger("test.plugin"),
                events=EventDispatcher(),
                storage=NullStorage(),
            )

            await provider.init(context)

            assert provider.model_config.provider == "anthropic"
            assert provider.model_config.model_name == "claude-x"

    def test_find_plugin_table(self):
        assert find_plugin_table({"shard.llm": {"a": 1}}) == {"a": 1}
        assert find_plugin_table({"other": {"a": 1}}) == {}
        assert find_plugin_table(None) == {}

    @pytest.mark.asyncio
    async def test_stream(self):
        model = FakeChatModel(
            chunks=[AIMessageChunk(content="he"), AIMessageChunk(content="llo")]
        )
        provider = LangChainModelProvider(factory=FakeFactory(model))
        await provider.init(make_context({"model": "gpt-4o"}))

        chunks = [
            chunk
            async for chunk in provider.chat_stream(
                ChatRequest(model="", messages=[ChatMessage(role="user", content="hi")])
            )
        ]

        assert [c.delta for c in chunks] == ["he", "llo", ""]
        assert chunks[-1].finish_reason == "stop"
        assert chunks[-1].tool_calls is None

    @pytest.mark.asyncio
    async def test_list_models_and_destroy(self):
        factory = FakeFactory(FakeChatModel())
        provider = LangChainModelProvider(factory=factory)
        assert await provider.list_models() == []

        await provider.init(make_context({"provider": "google", "maxTokens": 256}))
        models = await provider.list_models()

        assert models[0].name.startswith("google/")
        assert models[0].max_output_tokens == 256

        await provider.destroy()
        assert factory.cleared is True
        assert provider.model_config is None

    @pytest.mark.asyncio
    async def test_chat_before_init_raises(self):
        provider = LangChainModelProvider(factory=FakeFactory(FakeChatModel()))
        with pytest.raises(RuntimeError):
            await provider.chat(ChatRequest(model="", messages=[]))


class TestLLMModelFactory:
    def setup_method(self):
        self.factory = LLMModelFactory(Settings(_env_file=None, openai_api_key="sk-env"))
        self.provider = FakeProvider()
        self.factory.register_provider("openai", self.provider)

    def test_models_are_cached_per_config(self):
        config = ModelConfig(provider="openai", model_name="gpt-4o")

        first = self.factory.create_base_model(config)
        second = self.factory.create_base_model(
            ModelConfig(provider="openai", model_name="gpt-4o")
        )
        third = self.factory.create_base_model(
            ModelConfig(provider="openai", model_name="gpt-4o", temperature=0.1)
        )

        assert first is second
        assert third is not first
        assert self.factory.get_cache_stats() == {"cached_models": 2}

    def test_api_key_from_settings(self):
        config = ModelConfig(provider="openai", model_name="gpt-4o")
        self.factory.create_base_model(config)
        assert self.provider.created[0].api_key == "sk-env"

    def test_missing_api_key(self):
        self.factory.register_provider("anthropic", FakeProvider())
        with pytest.raises(ValueError, match="No API key"):
            self.factory.create_base_model(
                ModelConfig(provider="anthropic", model_name="claude")
            )

    def test_base_url_allows_keyless_endpoints(self):
        self.factory.register_provider("anthropic", FakeProvider())
        self.factory.create_base_model(
            ModelConfig(
                provider="anthropic", model_name="local", base_url="http://localhost:8080"
            )
        )

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            self.factory.create_base_model(ModelConfig(provider="acme", model_name="x"))

    def test_model_config_from_plugin_table(self):
        config = ModelConfig.from_plugin_config(
            {"provider": "anthropic", "maxTokens": 2048, "apiKey": "", "params": {"top_p": 1}}
        )
        assert config.model_name.startswith("claude")
        assert config.max_tokens == 2048
        assert config.api_key is None
        assert config.additional_params == {"top_p": 1}
