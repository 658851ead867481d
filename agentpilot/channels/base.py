"""Base channel interface for chat platforms."""

from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from agentpilot.bus.events import Attachment, InboundMessage, OutboundMessage
from agentpilot.bus.queue import MessageBus


class BaseChannel(ABC):
    """
    Abstract base class for chat channel implementations.

    Each channel (Telegram, Discord, etc.) should implement this interface
    to integrate with the agentpilot message bus.
    """

    name: str = "base"

    def __init__(self, config: Any, bus: MessageBus):
        """
        Initialize the channel.

        Args:
            config: Channel-specific configuration.
            bus: The message bus for communication.
        """
        self.config = config
        self.bus = bus
        self._running = False

    @abstractmethod
    async def start(self) -> None:
        """
        Start the channel and begin listening for messages.

        This should be a long-running async task that connects to the chat
        platform and forwards messages to the bus via _handle_message().
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the channel and clean up resources."""
        pass

    @abstractmethod
    async def send_message(self, chat_id: str, text: str) -> None:
        """Deliver text to a chat on this platform."""
        pass

    async def send(self, msg: OutboundMessage) -> None:
        """Outbound bus subscriber."""
        await self.send_message(msg.chat_id, msg.content)

    def is_allowed(self, sender_id: str, username: str | None = None) -> bool:
        """
        Check if a sender is allowed to use this bot.

        An empty allow list lets everyone through.
        """
        allow_list = getattr(self.config, "allow_from", [])
        if not allow_list:
            return True
        if str(sender_id) in allow_list:
            return True
        return bool(username) and (username in allow_list or f"@{username}" in allow_list)

    async def _handle_message(
        self,
        sender_id: str,
        chat_id: str,
        content: str,
        attachments: list[Attachment] | None = None,
        username: str | None = None,
    ) -> None:
        """Check the allow list and forward the message to the bus."""
        if not self.is_allowed(sender_id, username):
            logger.warning(
                f"Access denied for sender {sender_id} on channel {self.name}. "
                f"Add them to allowFrom list in config to grant access."
            )
            return

        msg = InboundMessage(
            channel=self.name,
            chat_id=str(chat_id),
            sender_id=str(sender_id),
            content=content,
            attachments=tuple(attachments or ()),
        )
        await self.bus.publish_inbound(msg)

    @property
    def is_running(self) -> bool:
        """Check if the channel is running."""
        return self._running
