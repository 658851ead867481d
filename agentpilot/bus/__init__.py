"""Message bus module for decoupled channel-agent communication."""

from agentpilot.bus.events import AgentEvent, InboundMessage, OutboundMessage
from agentpilot.bus.queue import MessageBus

__all__ = ["MessageBus", "InboundMessage", "OutboundMessage", "AgentEvent"]
