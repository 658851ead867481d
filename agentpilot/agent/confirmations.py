"""Pending confirmations for destructive tool calls awaiting a human "yes"."""

import time
from dataclasses import dataclass, field
from typing import Any

from agentpilot.bus.events import InboundMessage

Identity = tuple[str, str, str]


@dataclass
class PendingConfirmation:
    """A suspended tool call, resumed by the next message from the same identity."""

    tool_name: str
    args: dict[str, Any]
    session_id: str
    message: InboundMessage
    confirmation_message: str
    created_at: float = field(default_factory=time.monotonic)


class ConfirmationRegistry:
    """
    At most one pending confirmation per identity. A newer one replaces the older.

    With `ttl_seconds` set, entries older than the TTL behave as absent.
    """

    def __init__(self, ttl_seconds: float | None = None):
        self.ttl_seconds = ttl_seconds
        self._pending: dict[Identity, PendingConfirmation] = {}

    def _expired(self, pending: PendingConfirmation) -> bool:
        if self.ttl_seconds is None:
            return False
        return time.monotonic() - pending.created_at > self.ttl_seconds

    def set(self, key: Identity, pending: PendingConfirmation) -> None:
        self._pending[key] = pending

    def take(self, key: Identity) -> PendingConfirmation | None:
        """Remove and return the pending confirmation for `key`."""
        pending = self._pending.pop(key, None)
        if pending is None or self._expired(pending):
            return None
        return pending

    def exists(self, key: Identity) -> bool:
        pending = self._pending.get(key)
        if pending is None:
            return False
        if self._expired(pending):
            del self._pending[key]
            return False
        return True

    def prune(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        expired = [key for key, pending in self._pending.items() if self._expired(pending)]
        for key in expired:
            del self._pending[key]
        return len(expired)

    def clear(self) -> None:
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)
