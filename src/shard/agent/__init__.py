"""Agent execution path exports.

Exposes:
- `ToolDispatcher`: name-keyed tool execution with failure containment
- `AgentLoop`: bounded model/tool conversation driver
- `MessageRouter`: channel-to-agent message routing
"""

from .loop import AgentLoop
from .router import FAILURE_NOTICE, MessageRouter
from .tools import ToolDispatcher

__all__ = ["AgentLoop", "FAILURE_NOTICE", "MessageRouter", "ToolDispatcher"]
