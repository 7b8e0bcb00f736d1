"""Tests for the bounded agent loop."""

from typing import List

import pytest

from shard.agent.loop import AgentLoop
from shard.agent.tools import ToolDispatcher
from shard.core.events import Events
from shard.core.types import (
    AgentContext,
    AgentDefinition,
    ChatMessage,
    ChatResponse,
    TokenUsage,
    ToolCall,
    ToolResult,
)
from shard.plugins.base import Tool


def reply(text, usage=(1, 1)):
    return ChatResponse(
        message=ChatMessage(role="assistant", content=text),
        usage=TokenUsage(usage[0], usage[1], usage[0] + usage[1]),
        finish_reason="stop",
    )


def tool_request(*calls, text="", usage=(1, 1)):
    return ChatResponse(
        message=ChatMessage(role="assistant", content=text, tool_calls=list(calls)),
        usage=TokenUsage(usage[0], usage[1], usage[0] + usage[1]),
        finish_reason="tool_calls",
    )


class ScriptedModel:
    """Model plugin stand-in returning queued responses and recording requests."""

    name = "scripted"

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    async def chat(self, request):
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class CounterTool(Tool):
    name = "count"
    version = "1.0.0"
    description = "Count calls"

    def __init__(self):
        self.calls: List[dict] = []

    async def init(self, context):
        pass

    async def destroy(self):
        pass

    async def execute(self, args, context):
        self.calls.append(args)
        return ToolResult(success=True, output=f"count={len(self.calls)}")


CONTEXT = AgentContext(agent_id="default", channel_id="chan")


class TestSingleTurn:
    @pytest.mark.asyncio
    async def test_plain_answer(self, events, recorder):
        model = ScriptedModel([reply("hello", usage=(10, 5))])
        loop = AgentLoop(model, ToolDispatcher([]), events)
        definition = AgentDefinition(system_prompt="Be brief.", model="m-1")

        result = await loop.run(definition, "hi", CONTEXT)

        assert result.output == "hello"
        assert result.turns == 1
        assert result.max_turns_reached is False
        assert result.error is None
        assert result.usage == TokenUsage(10, 5, 15)

        request = model.requests[0]
        assert request.model == "m-1"
        assert request.tools is None
        assert [(m.role, m.content) for m in request.messages] == [
            ("system", "Be brief."),
            ("user", "hi"),
        ]
        assert recorder.names == [
            Events.AGENT_RUN_START,
            Events.AGENT_TURN,
            Events.AGENT_RUN_COMPLETE,
        ]
        assert recorder.payloads(Events.AGENT_TURN) == [
            {"agentId": "default", "turn": 0, "finishReason": "stop"}
        ]

    @pytest.mark.asyncio
    async def test_length_finish_reason_also_ends_run(self, events):
        response = reply("partial")
        response.finish_reason = "length"
        loop = AgentLoop(ScriptedModel([response]), ToolDispatcher([]), events)

        result = await loop.run(AgentDefinition(), "hi", CONTEXT)

        assert result.output == "partial"
        assert result.turns == 1


class TestToolTurns:
    @pytest.mark.asyncio
    async def test_tool_results_are_fed_back_in_order(self, events, recorder):
        tool = CounterTool()
        model = ScriptedModel(
            [
                tool_request(
                    ToolCall(id="a", name="count", arguments={"n": 1}),
                    ToolCall(id="b", name="count", arguments={"n": 2}),
                    usage=(3, 2),
                ),
                reply("done", usage=(4, 1)),
            ]
        )
        loop = AgentLoop(model, ToolDispatcher([tool]), events)

        result = await loop.run(AgentDefinition(), "count twice", CONTEXT)

        assert result.output == "done"
        assert result.turns == 2
        assert result.usage == TokenUsage(7, 3, 10)
        assert tool.calls == [{"n": 1}, {"n": 2}]

        second = model.requests[1].messages
        assert [m.role for m in second] == ["system", "user", "assistant", "tool", "tool"]
        assert (second[3].tool_call_id, second[3].content) == ("a", "count=1")
        assert (second[4].tool_call_id, second[4].content) == ("b", "count=2")
        assert [d.name for d in model.requests[0].tools] == ["count"]

        assert recorder.payloads(Events.AGENT_TOOL_CALL) == [
            {"agentId": "default", "toolName": "count", "toolCallId": "a"},
            {"agentId": "default", "toolName": "count", "toolCallId": "b"},
        ]

    @pytest.mark.asyncio
    async def test_unknown_tool_is_reported_to_model(self, events):
        model = ScriptedModel(
            [tool_request(ToolCall(id="x", name="ghost")), reply("sorry")]
        )
        loop = AgentLoop(model, ToolDispatcher([]), events)

        result = await loop.run(AgentDefinition(), "go", CONTEXT)

        assert result.output == "sorry"
        tool_message = model.requests[1].messages[-1]
        assert tool_message.content == "Unknown tool: ghost"

    @pytest.mark.asyncio
    async def test_allow_list_limits_offered_tools(self, events):
        model = ScriptedModel([reply("ok")])
        loop = AgentLoop(model, ToolDispatcher([CounterTool()]), events)

        await loop.run(AgentDefinition(tools=[]), "hi", CONTEXT)

        assert model.requests[0].tools is None


class TestTermination:
    @pytest.mark.asyncio
    async def test_max_turns_reached(self, events, recorder):
        call = ToolCall(id="c", name="count")
        model = ScriptedModel(
            [tool_request(call, text="thinking 1"), tool_request(call, text="thinking 2")]
        )
        tool = CounterTool()
        loop = AgentLoop(model, ToolDispatcher([tool]), events)

        result = await loop.run(AgentDefinition(max_turns=2), "loop", CONTEXT)

        assert result.turns == 2
        assert result.max_turns_reached is True
        assert result.output == "thinking 2"
        assert result.error is None
        assert len(model.requests) == 2
        assert len(tool.calls) == 2
        assert recorder.names[-1] == Events.AGENT_RUN_COMPLETE

    @pytest.mark.asyncio
    async def test_single_turn_limit_with_empty_tool_request(self, events):
        model = ScriptedModel([tool_request(ToolCall(id="c", name="count"))])
        loop = AgentLoop(model, ToolDispatcher([CounterTool()]), events)

        result = await loop.run(AgentDefinition(max_turns=1), "x", CONTEXT)

        assert result.output == ""
        assert result.turns == 1
        assert result.max_turns_reached is True

    @pytest.mark.asyncio
    async def test_model_error_returns_error_result(self, events, recorder):
        model = ScriptedModel(
            [
                tool_request(ToolCall(id="c", name="count"), usage=(2, 2)),
                RuntimeError("provider down"),
            ]
        )
        loop = AgentLoop(model, ToolDispatcher([CounterTool()]), events)

        result = await loop.run(AgentDefinition(), "x", CONTEXT)

        assert result.error == "provider down"
        assert result.output == ""
        assert result.turns == 1
        assert result.usage == TokenUsage(2, 2, 4)
        assert Events.AGENT_RUN_COMPLETE not in recorder.names

    def test_max_turns_must_be_positive(self):
        with pytest.raises(ValueError):
            AgentDefinition(max_turns=0)
