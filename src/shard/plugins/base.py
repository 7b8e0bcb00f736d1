"""Plugin base interfaces for Shard.

This module defines the lifecycle contract every plugin implements and the
capability interfaces for the four built-in plugin kinds:

- `Plugin`: identity (`name`, `version`, `type`, `dependencies`,
  `instance_id`) plus async `init(context)` / `destroy()`.
- `PluginContext`: immutable bundle handed to `init` once.
- `Channel`, `ModelProvider`, `Tool`, `StorageProvider`: capability methods
  the core calls on plugins of the matching type.

The core only requires the lifecycle contract; duck-typed objects exposing
the same attributes are accepted by the plugin manager as well.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
)

from ..core.types import (
    ChatChunk,
    ChatRequest,
    ChatResponse,
    Entity,
    Fact,
    IncomingMessage,
    ModelInfo,
    OutgoingMessage,
    SearchOptions,
    SearchResult,
    StoredMessage,
    ToolContext,
    ToolResult,
)

if TYPE_CHECKING:
    from ..config.accessor import Config
    from ..core.events import EventDispatcher

MessageHandler = Callable[[IncomingMessage], Awaitable[None]]


class PluginType(str, Enum):
    CHANNEL = "channel"
    MODEL = "model"
    TOOL = "tool"
    STORAGE = "storage"
    CUSTOM = "custom"


def plugin_type_name(value: Any) -> str:
    """Return the plain string for a plugin type given as enum member or str."""
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


@dataclass(frozen=True)
class PluginContext:
    """Collaborators handed to every plugin during `init`.

    Args:
        config: Read-only configuration accessor.
        logger: Logger plugins should write to.
        events: Shared event dispatcher.
        storage: Storage collaborator (a `StorageProvider` plugin, or the
            no-op `NullStorage` when none is configured).
    """

    config: "Config"
    logger: logging.Logger
    events: "EventDispatcher"
    storage: Any


class Plugin(ABC):
    """Lifecycle contract shared by every plugin.

    `init(context)` completes before any other method is called; `destroy()`
    must release everything the plugin acquired. Multi-instance plugins are
    registered as `base#instanceId` with `instance_id` set.
    """

    name: str = ""
    version: str = "0.0.0"
    type: str = PluginType.CUSTOM
    dependencies: Sequence[str] = ()
    instance_id: Optional[str] = None

    @abstractmethod
    async def init(self, context: PluginContext) -> None:
        """Acquire resources and read configuration."""

    @abstractmethod
    async def destroy(self) -> None:
        """Release all resources acquired in `init`."""


class Channel(Plugin):
    """Chat transport translating platform messages to and from Shard's types."""

    type = PluginType.CHANNEL

    @abstractmethod
    def on_message(self, handler: MessageHandler) -> None:
        """Register the coroutine called for every inbound message."""

    @abstractmethod
    async def send(self, message: OutgoingMessage) -> None:
        """Deliver an outbound message."""


class ModelProvider(Plugin):
    """Language-model backend."""

    type = PluginType.MODEL

    @abstractmethod
    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Return one complete model response."""

    @abstractmethod
    def chat_stream(self, request: ChatRequest) -> AsyncIterator[ChatChunk]:
        """Yield the response incrementally."""

    @abstractmethod
    async def list_models(self) -> List[ModelInfo]:
        """Return the models this provider can serve."""


class Tool(Plugin):
    """Callable capability exposed to the model.

    `parameters` is a JSON schema object describing `execute`'s arguments.
    Tools are responsible for their own sandboxing.
    """

    type = PluginType.TOOL
    description: str = ""
    parameters: Dict[str, Any] = {"type": "object", "properties": {}}

    @abstractmethod
    async def execute(self, args: Dict[str, Any], context: ToolContext) -> ToolResult:
        """Run the tool and describe the outcome."""


class StorageProvider(Plugin):
    """Persistent storage for chat history, entities, facts and search."""

    type = PluginType.STORAGE

    @abstractmethod
    async def ping(self) -> bool:
        """Return whether the backing store is reachable."""

    @abstractmethod
    async def store_message(self, message: StoredMessage) -> None: ...

    @abstractmethod
    async def get_messages(
        self, channel_id: str, limit: Optional[int] = None
    ) -> List[StoredMessage]: ...

    @abstractmethod
    async def search(self, options: SearchOptions) -> List[SearchResult]: ...

    @abstractmethod
    async def store_entity(self, entity: Entity) -> None: ...

    @abstractmethod
    async def get_entity(self, entity_id: str) -> Optional[Entity]: ...

    @abstractmethod
    async def store_fact(self, fact: Fact) -> None: ...

    @abstractmethod
    async def get_facts(self, subject: str) -> List[Fact]: ...
