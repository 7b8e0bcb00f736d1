"""Core building blocks shared by every other package.

Exposes:
- `EventDispatcher`, `Events`: publish/subscribe bus and event names
- `NullStorage`: storage collaborator used when none is configured
- data types from `shard.core.types`

`Runtime` lives in `shard.core.runtime` and is re-exported by `shard`.
"""

from .events import EventDispatcher, Events
from .storage import NullStorage
from .types import (
    AgentContext,
    AgentDefinition,
    AgentResult,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    TokenUsage,
    ToolCall,
    ToolContext,
    ToolDefinition,
    ToolResult,
)

__all__ = [
    "AgentContext",
    "AgentDefinition",
    "AgentResult",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "EventDispatcher",
    "Events",
    "NullStorage",
    "TokenUsage",
    "ToolCall",
    "ToolContext",
    "ToolDefinition",
    "ToolResult",
]
