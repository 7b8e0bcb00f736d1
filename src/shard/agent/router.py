"""Route inbound channel messages through the agent loop and back."""

import logging
from typing import Any, Dict, Optional, Sequence

from ..base.loggable import Loggable
from ..core.events import EventDispatcher, Events
from ..core.types import (
    AgentContext,
    AgentDefinition,
    IncomingMessage,
    MessageContent,
    OutgoingMessage,
)
from .loop import AgentLoop

FAILURE_NOTICE = "Sorry, something went wrong processing your message."


class MessageRouter(Loggable):
    """Bind every channel plugin to the agent loop.

    Each text message becomes one agent run with a fixed definition; a
    non-empty answer is sent back on the originating channel as a reply to
    the triggering message.
    """

    def __init__(
        self,
        agent_loop: AgentLoop,
        channels: Sequence[Any],
        definition: AgentDefinition,
        events: EventDispatcher,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__()
        self.agent_loop = agent_loop
        self.channels = list(channels)
        self.definition = definition
        self.events = events
        if logger is not None:
            self.logger = logger
        self._handlers: Dict[str, Any] = {}

    def start(self) -> None:
        for channel in self.channels:

            async def handler(message: IncomingMessage, channel: Any = channel) -> None:
                await self.handle_message(channel, message)

            channel.on_message(handler)
            self._handlers[channel.name] = handler
        self.logger.info(f"Routing messages from {len(self._handlers)} channel(s)")

    def stop(self) -> None:
        """Forget local handler bookkeeping; channels keep their registration."""
        self._handlers.clear()

    @property
    def active(self) -> bool:
        return bool(self._handlers)

    async def handle_message(self, channel: Any, message: IncomingMessage) -> None:
        await self.events.emit(
            Events.MESSAGE_INCOMING,
            {"channelId": message.channel_id, "messageId": message.id},
        )

        if message.content.type != "text":
            self.logger.debug(
                f"Skipping non-text message {message.id} (type: {message.content.type})"
            )
            return

        self.logger.info(
            f"Received message from {message.author_name} on {message.channel_id}"
        )

        try:
            result = await self.agent_loop.run(
                self.definition,
                message.content.text,
                AgentContext(agent_id=self.definition.id, channel_id=message.channel_id),
            )
            if result.output:
                await channel.send(
                    OutgoingMessage(
                        channel_id=message.channel_id,
                        content=MessageContent.of_text(result.output),
                        reply_to=message.id,
                    )
                )
                await self.events.emit(
                    Events.MESSAGE_OUTGOING,
                    {"channelId": message.channel_id, "messageId": message.id},
                )
        except Exception as e:
            self.logger.error(f"Error processing message {message.id}: {e}", exc_info=True)
            try:
                await channel.send(
                    OutgoingMessage(
                        channel_id=message.channel_id,
                        content=MessageContent.of_text(FAILURE_NOTICE),
                        reply_to=message.id,
                    )
                )
            except Exception as send_error:
                self.logger.error(f"Failed to send error reply: {send_error}")
