"""Typed publish/subscribe dispatcher shared by the runtime and plugins.

Delivery is strictly sequential: handlers bound to the exact event name run
in registration order, then wildcard handlers run, each awaited before the
next starts. A failing handler is logged and skipped; it never prevents
delivery to the remaining handlers. ``emit`` returns only after every handler
has settled.
"""

import inspect
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ..base.loggable import Loggable

Payload = Dict[str, Any]
EventHandler = Callable[[Payload], Union[None, Awaitable[None]]]
WildcardHandler = Callable[[str, Payload], Union[None, Awaitable[None]]]


class Events:
    """Event names emitted by the core."""

    RUNTIME_READY = "runtime:ready"
    RUNTIME_SHUTDOWN = "runtime:shutdown"
    PLUGIN_LOADED = "plugin:loaded"
    PLUGIN_DESTROYED = "plugin:destroyed"
    MESSAGE_INCOMING = "message:incoming"
    MESSAGE_OUTGOING = "message:outgoing"
    AGENT_RUN_START = "agent:run:start"
    AGENT_TURN = "agent:turn"
    AGENT_TOOL_CALL = "agent:tool:call"
    AGENT_RUN_COMPLETE = "agent:run:complete"


class EventDispatcher(Loggable):
    """Per-event handler sets plus wildcard handlers.

    Handler sets are insertion-ordered dicts, so registering the same handler
    twice keeps a single entry at its original position.
    """

    def __init__(self) -> None:
        super().__init__()
        self._handlers: Dict[str, Dict[EventHandler, None]] = {}
        self._wildcard_handlers: Dict[WildcardHandler, None] = {}

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event, {})[handler] = None

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if handlers is not None:
            handlers.pop(handler, None)

    def on_any(self, handler: WildcardHandler) -> None:
        """Register a handler called as ``handler(event, payload)`` for every event."""
        self._wildcard_handlers[handler] = None

    def off_any(self, handler: WildcardHandler) -> None:
        self._wildcard_handlers.pop(handler, None)

    async def emit(self, event: str, payload: Optional[Payload] = None) -> None:
        """Deliver ``payload`` to the named handlers, then to wildcard handlers."""
        payload = payload if payload is not None else {}

        for handler in list(self._handlers.get(event, {})):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.error(
                    f'Error in event handler for "{event}": {e}', exc_info=True
                )

        for handler in list(self._wildcard_handlers):
            try:
                result = handler(event, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.error(
                    f'Error in wildcard handler for "{event}": {e}', exc_info=True
                )

    def handler_count(self, event: Optional[str] = None) -> int:
        """Return the number of handlers for ``event``, or of all handlers."""
        if event is not None:
            return len(self._handlers.get(event, {}))
        return sum(len(h) for h in self._handlers.values()) + len(
            self._wildcard_handlers
        )

    def remove_all(self) -> None:
        """Drop every registration. Used at shutdown."""
        self._handlers.clear()
        self._wildcard_handlers.clear()
