"""Core types and errors shared by every agentpilot component."""

from agentpilot.core.errors import (
    AgentPilotError,
    ChannelError,
    ConfirmationRequiredError,
    DuplicateToolError,
    PermissionDeniedError,
    ProviderError,
)
from agentpilot.core.types import (
    ActionRequest,
    ActionResult,
    PermissionLevel,
    ToolDefinition,
)

__all__ = [
    "ActionRequest",
    "ActionResult",
    "AgentPilotError",
    "ChannelError",
    "ConfirmationRequiredError",
    "DuplicateToolError",
    "PermissionDeniedError",
    "PermissionLevel",
    "ProviderError",
    "ToolDefinition",
]
