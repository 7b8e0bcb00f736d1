"""Name-keyed tool invocation with uniform failure containment."""

from typing import Any, Dict, List, Optional, Sequence

from ..base.loggable import Loggable
from ..core.types import ToolCall, ToolContext, ToolDefinition, ToolResult


class ToolDispatcher(Loggable):
    """Map tool-call names to tool plugins and execute them.

    The map is built once at construction. ``execute`` never raises: unknown
    names and tool exceptions both come back as ``success=False`` results so
    the agent loop can hand them to the model like any other tool output.
    """

    def __init__(self, tools: Sequence[Any]):
        super().__init__()
        self._tools: Dict[str, Any] = {}
        for tool in tools:
            if tool.name in self._tools:
                self.logger.warning(f"Duplicate tool name ignored: {tool.name}")
                continue
            self._tools[tool.name] = tool

    @property
    def tool_names(self) -> List[str]:
        return list(self._tools)

    async def execute(self, call: ToolCall, context: ToolContext) -> ToolResult:
        tool = self._tools.get(call.name)
        if tool is None:
            self.logger.warning(f"Unknown tool: {call.name}")
            return ToolResult(success=False, output=f"Unknown tool: {call.name}")

        try:
            return await tool.execute(call.arguments, context)
        except Exception as e:
            self.logger.error(f'Tool "{call.name}" threw an error: {e}', exc_info=True)
            return ToolResult(success=False, output=f"Tool error: {e}")

    def get_definitions(
        self, allowed: Optional[Sequence[str]] = None
    ) -> List[ToolDefinition]:
        """Return model-facing definitions.

        With an allow-list, only tools that exist are returned, in the
        allow-list's order; without one, every tool in registration order.
        """
        if allowed is None:
            tools = list(self._tools.values())
        else:
            tools = [self._tools[name] for name in allowed if name in self._tools]

        return [
            ToolDefinition(
                name=tool.name,
                description=getattr(tool, "description", "") or "",
                parameters=dict(getattr(tool, "parameters", None) or {}),
            )
            for tool in tools
        ]
