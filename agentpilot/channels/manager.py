"""Channel manager: owns the enabled chat channels and routes outbound text."""

import asyncio

from loguru import logger

from agentpilot.bus.queue import MessageBus
from agentpilot.channels.base import BaseChannel
from agentpilot.config.schema import Config
from agentpilot.core.errors import ChannelError


class ChannelManager:
    """
    Manages chat channels and coordinates message routing.

    Each channel is subscribed to the outbound queue under its name, and
    `send_message` gives the scheduler a direct path to any running channel.
    """

    def __init__(self, config: Config, bus: MessageBus, channels: list[BaseChannel] | None = None):
        self.config = config
        self.bus = bus
        self.channels: dict[str, BaseChannel] = {}

        if channels is None:
            channels = self._init_channels()
        for channel in channels:
            self.add(channel)

    def _init_channels(self) -> list[BaseChannel]:
        channels: list[BaseChannel] = []
        if self.config.channels.telegram.enabled:
            from agentpilot.channels.telegram import TelegramChannel

            channels.append(TelegramChannel(self.config.channels.telegram, self.bus))
            logger.info("Telegram channel enabled")
        return channels

    def add(self, channel: BaseChannel) -> None:
        self.channels[channel.name] = channel
        self.bus.subscribe_outbound(channel.name, channel.send)

    @property
    def enabled_channels(self) -> list[str]:
        return list(self.channels)

    def get(self, name: str) -> BaseChannel | None:
        return self.channels.get(name)

    async def send_message(self, channel_type: str, chat_id: str, text: str) -> None:
        """
        Deliver text to a chat on a named channel.

        Raises:
            ChannelError: the channel is unknown or not running.
        """
        channel = self.channels.get(channel_type)
        if channel is None:
            raise ChannelError(channel_type, "not configured")
        if not channel.is_running:
            raise ChannelError(channel_type, "not running")
        await channel.send_message(chat_id, text)

    async def start_all(self) -> None:
        """Start all channels and the outbound dispatcher."""
        if not self.channels:
            logger.warning("No channels enabled")

        tasks = [asyncio.create_task(self.bus.dispatch_outbound())]
        for name, channel in self.channels.items():
            logger.info(f"Starting {name} channel...")
            tasks.append(asyncio.create_task(channel.start()))
        await asyncio.gather(*tasks, return_exceptions=True)

    async def stop_all(self) -> None:
        """Stop all channels and the dispatcher."""
        logger.info("Stopping all channels...")
        self.bus.stop()
        for name, channel in self.channels.items():
            try:
                await channel.stop()
                logger.info(f"Stopped {name} channel")
            except Exception as e:
                logger.error(f"Error stopping {name}: {e}")

    def get_status(self) -> dict[str, dict[str, bool]]:
        return {name: {"running": channel.is_running} for name, channel in self.channels.items()}
