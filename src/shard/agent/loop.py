"""Bounded model/tool conversation loop for a single request.

Flow of one run:
  seed (system + user) -> model -> [tool calls -> tools -> model]* -> result

The loop stops on the first model response whose finish reason is not
``tool_calls``, or after ``max_turns`` model calls. Within a run, model calls
and tool executions are strictly sequential, in the order the model returned
the calls. ``run`` never raises: any failure becomes an ``AgentResult`` with
``error`` set and whatever token usage had accumulated.
"""

import logging
from typing import Any, List, Optional

from ..base.loggable import Loggable
from ..core.events import EventDispatcher, Events
from ..core.types import (
    AgentContext,
    AgentDefinition,
    AgentResult,
    ChatMessage,
    ChatRequest,
    TokenUsage,
    ToolContext,
)
from .tools import ToolDispatcher


class AgentLoop(Loggable):
    """Drive one model provider and the tool dispatcher for an agent run.

    Attributes:
      - model: `ModelProvider` plugin answering ``chat`` requests.
      - tools: `ToolDispatcher` executing requested tool calls.
      - events: Dispatcher receiving run/turn/tool observability events.

    Concurrent ``run`` calls share no state and are independent.
    """

    def __init__(
        self,
        model: Any,
        tools: ToolDispatcher,
        events: EventDispatcher,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__()
        self.model = model
        self.tools = tools
        self.events = events
        if logger is not None:
            self.logger = logger

    async def run(
        self, definition: AgentDefinition, input_text: str, context: AgentContext
    ) -> AgentResult:
        """Run the conversation to a final answer, the turn limit, or an error."""
        usage = TokenUsage()
        turns = 0

        try:
            max_turns = definition.max_turns
            tool_defs = self.tools.get_definitions(definition.tools)
            messages: List[ChatMessage] = [
                ChatMessage(role="system", content=definition.system_prompt),
                ChatMessage(role="user", content=input_text),
            ]

            await self.events.emit(
                Events.AGENT_RUN_START,
                {"agentId": context.agent_id, "input": input_text},
            )

            for turn in range(max_turns):
                response = await self.model.chat(
                    ChatRequest(
                        model=definition.model,
                        messages=list(messages),
                        tools=tool_defs or None,
                    )
                )
                turns = turn + 1
                usage.add(response.usage)
                messages.append(response.message)

                await self.events.emit(
                    Events.AGENT_TURN,
                    {
                        "agentId": context.agent_id,
                        "turn": turn,
                        "finishReason": response.finish_reason,
                    },
                )

                if response.finish_reason != "tool_calls":
                    result = AgentResult(
                        output=response.message.content or "",
                        usage=usage,
                        turns=turns,
                    )
                    await self._complete(context, result)
                    return result

                for call in response.message.tool_calls or []:
                    await self.events.emit(
                        Events.AGENT_TOOL_CALL,
                        {
                            "agentId": context.agent_id,
                            "toolName": call.name,
                            "toolCallId": call.id,
                        },
                    )
                    tool_result = await self.tools.execute(
                        call,
                        ToolContext(
                            tool_call_id=call.id,
                            agent_id=context.agent_id,
                            channel_id=context.channel_id,
                        ),
                    )
                    messages.append(
                        ChatMessage(
                            role="tool",
                            content=tool_result.output,
                            tool_call_id=call.id,
                        )
                    )

            self.logger.warning(
                f'Agent "{context.agent_id}" reached max turns ({max_turns})'
            )
            result = AgentResult(
                output=self._last_assistant_content(messages),
                usage=usage,
                turns=turns,
                max_turns_reached=True,
            )
            await self._complete(context, result)
            return result

        except Exception as e:
            self.logger.error(f"Agent loop error: {e}", exc_info=True)
            return AgentResult(output="", usage=usage, turns=turns, error=str(e))

    async def _complete(self, context: AgentContext, result: AgentResult) -> None:
        await self.events.emit(
            Events.AGENT_RUN_COMPLETE,
            {"agentId": context.agent_id, "result": result},
        )

    @staticmethod
    def _last_assistant_content(messages: List[ChatMessage]) -> str:
        """Return the content of the most recent assistant message, or ""."""
        for message in reversed(messages):
            if message.role == "assistant":
                return message.content or ""
        return ""
