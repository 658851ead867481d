"""Shared data types for actions, tools and permissions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

# Channel types the gateway knows how to talk to. "cli" is the local terminal.
CHANNEL_TYPES = ("telegram", "discord", "simplex", "cli")

# Action domains. Each worker owns exactly one.
ACTION_TYPES = ("browser", "email", "files", "notes", "scheduler", "shell")


class PermissionLevel(IntEnum):
    """Ordinal authorization levels, lowest to highest."""

    READ_ONLY = 0
    COMMUNICATE = 1
    MODIFY = 2
    EXECUTE = 3
    ADMIN = 4

    @classmethod
    def parse(cls, value: Any) -> "PermissionLevel":
        """Accept an int, a numeric string or a level name ("execute", "READ_ONLY")."""
        if isinstance(value, PermissionLevel):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        key = text.upper().replace("-", "_")
        if key == "READONLY":
            key = "READ_ONLY"
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown permission level: {value!r}") from None


@dataclass
class ToolDefinition:
    """A tool the model may call, with JSON-schema parameters."""

    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_schema(self) -> dict[str, Any]:
        """OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ActionRequest:
    """One tool-call dispatch, scoped to the session and identity that asked for it."""

    type: str
    operation: str
    params: dict[str, Any]
    session_id: str
    channel_type: str
    channel_id: str
    user_id: str

    @property
    def action(self) -> str:
        return f"{self.type}:{self.operation}"


@dataclass
class ActionResult:
    """Outcome of a worker execution."""

    success: bool
    data: Any = None
    error: str | None = None
    confirmation_required: bool = False
    confirmation_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
        if self.confirmation_required:
            result["confirmationRequired"] = True
            if self.confirmation_message:
                result["confirmationMessage"] = self.confirmation_message
        return result

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ActionResult":
        return cls(success=False, error=error)
