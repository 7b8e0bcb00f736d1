"""Conversion between Shard chat types and LangChain messages."""

from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from ..core.types import ChatMessage, TokenUsage, ToolCall, ToolDefinition

LENGTH_STOP_REASONS = {"length", "max_tokens", "MAX_TOKENS"}


def text_content(content: Any) -> str:
    """Flatten LangChain message content into plain text.

    Content is either a string or a list of parts; string parts and
    ``{"type": "text"}`` parts are joined, everything else is dropped.
    """
    if isinstance(content, str):
        return content
    if not content:
        return ""
    parts = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(str(part.get("text", "")))
    return "".join(parts)


def to_langchain_messages(messages: Sequence[ChatMessage]) -> List[BaseMessage]:
    converted: List[BaseMessage] = []
    for message in messages:
        if message.role == "system":
            converted.append(SystemMessage(content=message.content))
        elif message.role == "user":
            converted.append(HumanMessage(content=message.content))
        elif message.role == "assistant":
            tool_calls = [
                {"name": call.name, "args": call.arguments, "id": call.id}
                for call in message.tool_calls or []
            ]
            converted.append(AIMessage(content=message.content, tool_calls=tool_calls))
        elif message.role == "tool":
            converted.append(
                ToolMessage(
                    content=message.content,
                    tool_call_id=message.tool_call_id or "",
                )
            )
        else:
            raise ValueError(f"Unsupported message role: {message.role}")
    return converted


def from_ai_message(message: AIMessage) -> ChatMessage:
    """Convert a model reply (or an aggregated stream) into a ``ChatMessage``."""
    tool_calls = [
        ToolCall(
            id=call.get("id") or f"call_{index}",
            name=call["name"],
            arguments=dict(call.get("args") or {}),
        )
        for index, call in enumerate(message.tool_calls or [])
    ]
    return ChatMessage(
        role="assistant",
        content=text_content(message.content),
        tool_calls=tool_calls or None,
    )


def usage_from_message(message: AIMessage) -> TokenUsage:
    metadata: Optional[Dict[str, Any]] = getattr(message, "usage_metadata", None)
    if not metadata:
        return TokenUsage()
    prompt = int(metadata.get("input_tokens", 0) or 0)
    completion = int(metadata.get("output_tokens", 0) or 0)
    total = int(metadata.get("total_tokens", 0) or (prompt + completion))
    return TokenUsage(
        prompt_tokens=prompt, completion_tokens=completion, total_tokens=total
    )


def finish_reason_for(message: AIMessage) -> str:
    """Map a LangChain reply onto ``stop``, ``tool_calls`` or ``length``.

    Parsed tool calls win over whatever stop reason the provider reported.
    """
    if message.tool_calls:
        return "tool_calls"
    metadata = message.response_metadata or {}
    reason = metadata.get("finish_reason") or metadata.get("stop_reason")
    if reason in LENGTH_STOP_REASONS:
        return "length"
    return "stop"


def to_openai_tool(definition: ToolDefinition) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": definition.name,
            "description": definition.description,
            "parameters": definition.parameters or {"type": "object", "properties": {}},
        },
    }
