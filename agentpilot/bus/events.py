"""Event types for the message bus."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

AgentEventType = Literal["thinking", "action", "response", "error", "confirmation"]


@dataclass(frozen=True)
class Attachment:
    """File or media attached to an inbound message."""

    type: Literal["image", "file", "audio", "video"]
    url: str
    name: str
    mime_type: str
    size: int


@dataclass(frozen=True)
class InboundMessage:
    """Message received from a chat channel, or synthesized by the scheduler."""

    channel: str  # telegram, discord, simplex, cli
    chat_id: str  # Chat/channel identifier
    sender_id: str  # User identifier
    content: str  # Message text
    attachments: tuple[Attachment, ...] = ()
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def identity(self) -> tuple[str, str, str]:
        """(channel, chat, user) triple that scopes sessions and confirmations."""
        return (self.channel, self.chat_id, self.sender_id)


@dataclass
class OutboundMessage:
    """Message to send to a chat channel."""

    channel: str
    chat_id: str
    content: str
    reply_to: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AgentEvent:
    """
    Lifecycle event broadcast by the agent loop.

    Purely observational: nothing in the core reads these back.
    """

    type: AgentEventType
    session_id: str | None
    channel_type: str
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.now)

    @staticmethod
    def thinking(session_id: str, channel_type: str, message: str) -> "AgentEvent":
        return AgentEvent("thinking", session_id, channel_type, {"message": message})

    @staticmethod
    def action(session_id: str, channel_type: str, tool: str, arguments: dict[str, Any]) -> "AgentEvent":
        return AgentEvent("action", session_id, channel_type, {"tool": tool, "arguments": arguments})

    @staticmethod
    def response(session_id: str, channel_type: str, content: str) -> "AgentEvent":
        return AgentEvent("response", session_id, channel_type, {"content": content})

    @staticmethod
    def error(session_id: str | None, channel_type: str, message: str) -> "AgentEvent":
        return AgentEvent("error", session_id, channel_type, {"error": message})

    @staticmethod
    def confirmation(session_id: str, channel_type: str, action: str, message: str) -> "AgentEvent":
        return AgentEvent("confirmation", session_id, channel_type, {"action": action, "message": message})

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "sessionId": self.session_id,
            "channelType": self.channel_type,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }
