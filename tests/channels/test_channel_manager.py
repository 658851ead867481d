"""Tests for channel routing and the allow list."""

import pytest

from agentpilot.bus.queue import MessageBus
from agentpilot.channels.base import BaseChannel
from agentpilot.channels.manager import ChannelManager
from agentpilot.config.schema import Config, TelegramConfig
from agentpilot.core.errors import ChannelError


class RecordingChannel(BaseChannel):
    name = "telegram"

    def __init__(self, config, bus):
        super().__init__(config, bus)
        self.sent: list[tuple[str, str]] = []

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False

    async def send_message(self, chat_id: str, text: str) -> None:
        self.sent.append((chat_id, text))


def test_disabled_telegram_is_not_created():
    manager = ChannelManager(Config(), MessageBus())
    assert manager.enabled_channels == []


def test_enabled_telegram_is_created():
    config = Config()
    config.channels.telegram.enabled = True
    config.channels.telegram.token = "123:abc"

    manager = ChannelManager(config, MessageBus())

    assert manager.enabled_channels == ["telegram"]
    assert manager.get_status() == {"telegram": {"running": False}}


@pytest.mark.asyncio
async def test_send_message_requires_running_channel():
    bus = MessageBus()
    channel = RecordingChannel(TelegramConfig(), bus)
    manager = ChannelManager(Config(), bus, channels=[channel])

    with pytest.raises(ChannelError, match="not running"):
        await manager.send_message("telegram", "42", "hi")
    with pytest.raises(ChannelError, match="not configured"):
        await manager.send_message("discord", "42", "hi")

    await channel.start()
    await manager.send_message("telegram", "42", "hi")

    assert channel.sent == [("42", "hi")]


@pytest.mark.asyncio
async def test_allow_list_filters_inbound():
    bus = MessageBus()
    channel = RecordingChannel(TelegramConfig(allow_from=["1001", "@alice"]), bus)

    await channel._handle_message("999", "42", "blocked")
    await channel._handle_message("1002", "42", "by username", username="alice")
    await channel._handle_message("1001", "42", "by id")

    assert bus.inbound_size == 2
    first = await bus.consume_inbound()
    assert (first.channel, first.chat_id, first.sender_id, first.content) == ("telegram", "42", "1002", "by username")


def test_empty_allow_list_allows_everyone():
    channel = RecordingChannel(TelegramConfig(), MessageBus())
    assert channel.is_allowed("anyone")
