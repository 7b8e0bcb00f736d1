"""Data types shared by the runtime, plugins and the agent execution path.

Messages, tool calls and results are plain dataclasses passed between the
agent loop, the tool dispatcher and model/channel plugins. The agent
definition is a Pydantic model because it is built from user configuration
and benefits from validation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from ..config.accessor import Config

Role = Literal["system", "user", "assistant", "tool"]
FinishReason = Literal["stop", "tool_calls", "length", "error"]

DEFAULT_MAX_TURNS = 10
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: Optional["TokenUsage"]) -> None:
        """Accumulate ``other`` into this instance in place."""
        if other is None:
            return
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens
        self.total_tokens += other.total_tokens

    def to_dict(self) -> Dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatMessage:
    """One entry of a conversation history.

    Assistant messages may carry ``tool_calls``; tool messages point back to
    the call they answer through ``tool_call_id``.
    """

    role: Role
    content: str = ""
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None
    name: Optional[str] = None


@dataclass
class ToolDefinition:
    """Model-facing description of a tool. Never carries the callable."""

    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolContext:
    tool_call_id: str
    agent_id: Optional[str] = None
    channel_id: Optional[str] = None


@dataclass
class Artifact:
    name: str
    mime_type: str
    data: Union[str, bytes]


@dataclass
class ToolResult:
    success: bool
    output: str
    artifacts: Optional[List[Artifact]] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class ChatRequest:
    model: str
    messages: List[ChatMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    tools: Optional[List[ToolDefinition]] = None


@dataclass
class ChatResponse:
    message: ChatMessage
    usage: TokenUsage = field(default_factory=TokenUsage)
    finish_reason: FinishReason = "stop"


@dataclass
class ChatChunk:
    """Incremental piece of a streamed model response."""

    delta: str = ""
    tool_calls: Optional[List[ToolCall]] = None
    usage: Optional[TokenUsage] = None
    finish_reason: Optional[FinishReason] = None


@dataclass
class ModelInfo:
    id: str
    name: str
    context_window: int = 0
    max_output_tokens: Optional[int] = None
    supports_tools: bool = True
    supports_streaming: bool = True


class AgentDefinition(BaseModel):
    """Static description of an agent: prompt, model and tool allow-list.

    ``tools=None`` exposes every registered tool; an empty list exposes none.
    """

    id: str = "default"
    name: str = "Shard"
    description: str = ""
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    model: str = ""
    tools: Optional[List[str]] = None
    max_turns: int = Field(default=DEFAULT_MAX_TURNS, ge=1)

    @classmethod
    def from_config(cls, config: Config) -> "AgentDefinition":
        """Build the definition from the ``agents`` configuration table."""
        agents = config.get("agents", {}) or {}
        values: Dict[str, Any] = {}
        key_mapping = {
            "id": "id",
            "name": "name",
            "description": "description",
            "systemPrompt": "system_prompt",
            "defaultModel": "model",
            "tools": "tools",
            "maxTurns": "max_turns",
        }
        for config_key, field_name in key_mapping.items():
            if config_key in agents:
                values[field_name] = agents[config_key]
        return cls(**values)


@dataclass
class AgentContext:
    agent_id: str
    channel_id: Optional[str] = None
    conversation_id: Optional[str] = None


@dataclass
class AgentResult:
    """Outcome of one agent run.

    ``error`` is set only when the run failed; ``max_turns_reached`` flags a
    run that ran out of turns without a final answer.
    """

    output: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    turns: int = 0
    max_turns_reached: bool = False
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output": self.output,
            "usage": self.usage.to_dict(),
            "turns": self.turns,
            "max_turns_reached": self.max_turns_reached,
            "error": self.error,
            "metadata": dict(self.metadata),
        }


@dataclass
class MessageContent:
    """Channel message payload.

    ``type`` is ``"text"`` (uses ``text``), ``"media"`` (uses ``url``,
    ``mime_type`` and ``caption``) or ``"rich"`` (uses ``blocks``).
    """

    type: str = "text"
    text: str = ""
    url: Optional[str] = None
    mime_type: Optional[str] = None
    caption: Optional[str] = None
    blocks: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def of_text(cls, text: str) -> "MessageContent":
        return cls(type="text", text=text)


@dataclass
class IncomingMessage:
    id: str
    channel_id: str
    author_id: str
    author_name: str
    content: MessageContent
    timestamp: datetime = field(default_factory=datetime.now)
    reply_to: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OutgoingMessage:
    channel_id: str
    content: MessageContent
    reply_to: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StoredMessage:
    id: str
    channel_id: str
    author_id: str
    content: str
    timestamp: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Entity:
    id: str
    name: str
    type: str
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Fact:
    id: str
    subject: str
    predicate: str
    object: str
    confidence: float
    source: str
    timestamp: datetime


@dataclass
class SearchOptions:
    query: str
    limit: Optional[int] = None
    threshold: Optional[float] = None
    channel_id: Optional[str] = None
    before: Optional[datetime] = None
    after: Optional[datetime] = None


@dataclass
class SearchResult:
    message: StoredMessage
    score: float
