"""Shard: a pluggable chat-agent runtime.

Exposes:
- `Runtime`: boots plugins, wires the agent, and shuts everything down
- `Config`, `Settings`: runtime configuration and process settings
- `EventDispatcher`, `Events`: publish/subscribe bus
- `PluginManager`, `Plugin` and the capability interfaces
- `AgentLoop`, `ToolDispatcher`, `MessageRouter`: agent execution path
"""

__version__ = "0.1.0"

from .agent import AgentLoop, MessageRouter, ToolDispatcher
from .config import Config, ConfigError, Settings
from .core import EventDispatcher, Events
from .core.runtime import Runtime
from .plugins import (
    Channel,
    ModelProvider,
    Plugin,
    PluginContext,
    PluginManager,
    PluginType,
    StorageProvider,
    Tool,
)

__all__ = [
    "AgentLoop",
    "Channel",
    "Config",
    "ConfigError",
    "EventDispatcher",
    "Events",
    "MessageRouter",
    "ModelProvider",
    "Plugin",
    "PluginContext",
    "PluginManager",
    "PluginType",
    "Runtime",
    "Settings",
    "StorageProvider",
    "Tool",
    "ToolDispatcher",
    "__version__",
]
