"""Tests for the message bus and event types."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from agentpilot.bus.events import AgentEvent, InboundMessage, OutboundMessage
from agentpilot.bus.queue import MessageBus


def test_inbound_identity_and_unique_ids():
    a = InboundMessage(channel="telegram", chat_id="c", sender_id="u", content="hi")
    b = InboundMessage(channel="telegram", chat_id="c", sender_id="u", content="hi")

    assert a.identity == ("telegram", "c", "u")
    assert a.id != b.id


def test_event_factories():
    event = AgentEvent.confirmation("s1", "cli", "delete_file", "sure?")

    assert event.type == "confirmation"
    assert event.data == {"action": "delete_file", "message": "sure?"}
    assert AgentEvent.error(None, "cli", "boom").data == {"error": "boom"}

    payload = event.to_dict()
    assert payload["sessionId"] == "s1"
    assert payload["channelType"] == "cli"


@pytest.mark.asyncio
async def test_queues_are_fifo():
    bus = MessageBus()
    first = InboundMessage(channel="cli", chat_id="c", sender_id="u", content="1")
    second = InboundMessage(channel="cli", chat_id="c", sender_id="u", content="2")

    await bus.publish_inbound(first)
    await bus.publish_inbound(second)

    assert bus.inbound_size == 2
    assert await bus.consume_inbound() is first
    assert await bus.consume_inbound() is second


@pytest.mark.asyncio
async def test_dispatch_routes_by_channel():
    bus = MessageBus()
    telegram = AsyncMock()
    broken = AsyncMock(side_effect=RuntimeError("offline"))
    bus.subscribe_outbound("telegram", broken)
    bus.subscribe_outbound("telegram", telegram)

    await bus.publish_outbound(OutboundMessage(channel="telegram", chat_id="c", content="hi"))
    await bus.publish_outbound(OutboundMessage(channel="discord", chat_id="c", content="nobody listens"))
    dispatcher = asyncio.create_task(bus.dispatch_outbound())

    for _ in range(50):
        if bus.outbound_size == 0 and telegram.await_count:
            break
        await asyncio.sleep(0.01)
    bus.stop()
    await asyncio.wait_for(dispatcher, timeout=3)

    telegram.assert_awaited_once()
    assert telegram.await_args.args[0].content == "hi"


@pytest.mark.asyncio
async def test_event_listener_errors_are_isolated():
    bus = MessageBus()
    received = []

    async def good(event):
        received.append(event.type)

    bus.subscribe_events(AsyncMock(side_effect=RuntimeError("bad listener")))
    bus.subscribe_events(good)

    await bus.emit_event(AgentEvent.thinking("s1", "cli", "hello"))

    assert received == ["thinking"]
