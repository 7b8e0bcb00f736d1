"""FastAPI routes and service wiring for the Shard runtime.

Exposes HTTP endpoints for:

- Running the agent against a single message (`POST /chat`)
- Listing plugins and fetching plugin details
- Reporting runtime status and a liveness probe

`initialize_api()` registers a booted `Runtime` in the shared service
container; routes reach it through FastAPI dependencies.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..base.loggable import Loggable
from ..core.runtime import Runtime
from ..core.types import AgentContext
from ..plugins.base import plugin_type_name

API_CHANNEL_ID = "api"


class ChatRequest(BaseModel):
    """Request payload for the chat endpoint.

    Attributes:
        message: User's input text.
        channel_id: Channel reported to tools; defaults to ``"api"``.
    """

    message: str = Field(min_length=1)
    channel_id: str = API_CHANNEL_ID


class ChatResponse(BaseModel):
    """Outcome of one agent run."""

    response: str
    agent_id: str
    turns: int
    usage: Dict[str, int]
    max_turns_reached: bool = False
    error: Optional[str] = None


class PluginInfo(BaseModel):
    """Public information about a registered plugin.

    Attributes:
        status: ``"healthy"``, or ``"failed"`` when ``init`` threw.
    """

    name: str
    version: str
    type: str
    instance_id: Optional[str] = None
    dependencies: List[str] = []
    status: str


class SystemStatus(BaseModel):
    status: str
    ready: bool
    plugins: List[str]
    failed_plugins: List[str]
    agent_id: Optional[str] = None
    model: Optional[str] = None
    tools: List[str] = []


class APIServiceContainer(Loggable):
    """Holds the runtime served by the API. Accessors raise HTTP 503 until set."""

    def __init__(self) -> None:
        super().__init__()
        self.runtime: Optional[Runtime] = None

    def initialize(self, runtime: Runtime) -> None:
        self.runtime = runtime
        self.logger.info("API services initialized")

    def reset(self) -> None:
        self.runtime = None

    def get_runtime(self) -> Runtime:
        if self.runtime is None:
            raise HTTPException(status_code=503, detail="Runtime not initialized")
        return self.runtime


# Global service container
service_container = APIServiceContainer()
router = APIRouter(prefix="/api/v1")


def get_runtime() -> Runtime:
    """FastAPI dependency providing the registered runtime."""
    return service_container.get_runtime()


def _plugin_info(runtime: Runtime, plugin: Any) -> PluginInfo:
    failed = plugin.name in runtime.plugin_manager.failed_plugins
    return PluginInfo(
        name=plugin.name,
        version=plugin.version,
        type=plugin_type_name(plugin.type),
        instance_id=getattr(plugin, "instance_id", None),
        dependencies=list(getattr(plugin, "dependencies", None) or []),
        status="failed" if failed else "healthy",
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, runtime: Runtime = Depends(get_runtime)):
    """Run the agent on one message and return its answer.

    Raises:
        HTTPException: 503 when no model plugin is wired.
    """
    if runtime.agent_loop is None or runtime.agent_definition is None:
        raise HTTPException(status_code=503, detail="No model plugin available")

    definition = runtime.agent_definition
    result = await runtime.agent_loop.run(
        definition,
        request.message,
        AgentContext(agent_id=definition.id, channel_id=request.channel_id),
    )
    if result.error:
        service_container.logger.error(f"Chat error: {result.error}")

    return ChatResponse(
        response=result.output,
        agent_id=definition.id,
        turns=result.turns,
        usage=result.usage.to_dict(),
        max_turns_reached=result.max_turns_reached,
        error=result.error,
    )


@router.get("/plugins", response_model=List[PluginInfo])
async def list_plugins(runtime: Runtime = Depends(get_runtime)):
    """List registered plugins in registration order."""
    return [
        _plugin_info(runtime, runtime.plugin_manager.get_plugin(name))
        for name in runtime.plugin_manager.get_available_plugins()
    ]


@router.get("/plugins/{plugin_name}", response_model=PluginInfo)
async def get_plugin(plugin_name: str, runtime: Runtime = Depends(get_runtime)):
    """Return details for one plugin.

    Instance names contain ``#``; clients must URL-encode it as ``%23``.

    Raises:
        HTTPException: 404 if the plugin is not registered.
    """
    plugin = runtime.plugin_manager.get_plugin(plugin_name)
    if plugin is None:
        raise HTTPException(status_code=404, detail=f"Plugin {plugin_name} not found")
    return _plugin_info(runtime, plugin)


@router.get("/status", response_model=SystemStatus)
async def system_status(runtime: Runtime = Depends(get_runtime)):
    """Return a snapshot of the runtime state."""
    definition = runtime.agent_definition
    model = runtime.agent_loop.model.name if runtime.agent_loop else None
    return SystemStatus(
        status="operational" if runtime.ready else "starting",
        ready=runtime.ready,
        plugins=runtime.plugin_manager.get_available_plugins(),
        failed_plugins=sorted(runtime.plugin_manager.failed_plugins),
        agent_id=definition.id if definition else None,
        model=model,
        tools=runtime.tool_dispatcher.tool_names if runtime.tool_dispatcher else [],
    )


@router.get("/health")
async def health_check():
    """Simple liveness probe for the API service."""
    return {"status": "healthy"}


def initialize_api(runtime: Runtime) -> None:
    """Register ``runtime`` in the global service container."""
    service_container.initialize(runtime)
    service_container.logger.info(
        f"Serving plugins: {runtime.plugin_manager.get_available_plugins()}"
    )
