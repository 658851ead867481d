"""Authorization and audit."""

from agentpilot.permissions.guard import (
    ACTION_REQUIRED_LEVELS,
    DESTRUCTIVE_OPERATIONS,
    PermissionCheck,
    PermissionGuard,
)

__all__ = ["ACTION_REQUIRED_LEVELS", "DESTRUCTIVE_OPERATIONS", "PermissionCheck", "PermissionGuard"]
