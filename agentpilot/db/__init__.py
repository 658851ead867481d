"""Persistence layer."""

from agentpilot.db.store import (
    AuditEntry,
    ConversationMessage,
    PermissionRule,
    ScheduledTask,
    Session,
    SQLiteStore,
)

__all__ = [
    "AuditEntry",
    "ConversationMessage",
    "PermissionRule",
    "ScheduledTask",
    "Session",
    "SQLiteStore",
]
