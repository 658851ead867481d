"""Permission guard: authorization levels, destructive-operation gate and audit trail."""

import json
from dataclasses import dataclass
from typing import Any

from loguru import logger

from agentpilot.core.errors import PermissionDeniedError
from agentpilot.core.types import ActionRequest, PermissionLevel
from agentpilot.db.store import SQLiteStore

ACTION_REQUIRED_LEVELS: dict[str, PermissionLevel] = {
    "browser": PermissionLevel.READ_ONLY,
    "email": PermissionLevel.COMMUNICATE,
    "files": PermissionLevel.MODIFY,
    "notes": PermissionLevel.MODIFY,
    "scheduler": PermissionLevel.MODIFY,
    "shell": PermissionLevel.EXECUTE,
}

# Irreversible operations. These always need a human "yes", whatever the level.
DESTRUCTIVE_OPERATIONS = frozenset({"send_email", "delete_file", "shell_exec"})

_PREVIEW_CHARS = 200


@dataclass(frozen=True)
class PermissionCheck:
    allowed: bool
    confirmation_required: bool = False
    confirmation_message: str | None = None


def required_level(action_type: str) -> PermissionLevel:
    """Level an action domain requires. Unknown domains need ADMIN."""
    return ACTION_REQUIRED_LEVELS.get(action_type, PermissionLevel.ADMIN)


def preview_args(params: dict[str, Any]) -> str:
    text = json.dumps(params, ensure_ascii=False, default=str)
    if len(text) > _PREVIEW_CHARS:
        text = text[:_PREVIEW_CHARS] + "..."
    return text


class PermissionGuard:
    """
    Decides whether an action request may run, and records every attempt.

    The level gate and the destructive gate are independent: a request must
    pass the level gate first, and a destructive one then still needs
    confirmation, even at ADMIN.
    """

    def __init__(
        self,
        store: SQLiteStore,
        default_level: PermissionLevel | int = PermissionLevel.READ_ONLY,
        confirm_operations: list[str] | None = None,
    ):
        self.store = store
        self.default_level = PermissionLevel(default_level)
        self.destructive_operations = DESTRUCTIVE_OPERATIONS | frozenset(confirm_operations or [])

    def check(self, request: ActionRequest) -> PermissionCheck:
        """
        Authorize a request.

        Raises:
            PermissionDeniedError: the effective level is below what the domain requires.
        """
        needed = required_level(request.type)
        current = self.get_level(request.channel_type, request.channel_id, request.user_id, request.type)

        if current < needed:
            logger.warning(
                f"Denied {request.action} for {request.channel_type}:{request.channel_id}:{request.user_id} "
                f"(level {int(current)} < {int(needed)})"
            )
            raise PermissionDeniedError(request.action, needed, current)

        if request.operation in self.destructive_operations:
            return PermissionCheck(
                allowed=True,
                confirmation_required=True,
                confirmation_message=(
                    f'Action "{request.operation}" on {request.type} requires your confirmation.\n'
                    f"Details: {preview_args(request.params)}"
                ),
            )

        return PermissionCheck(allowed=True)

    def get_level(self, channel_type: str, channel_id: str, user_id: str, action_type: str) -> PermissionLevel:
        """Effective level: user rule, else channel-wide rule, else the default."""
        level = self.store.get_permission(channel_type, channel_id, action_type, user_id=user_id)
        if level is None:
            return self.default_level
        return PermissionLevel(level)

    def log_action(
        self,
        request: ActionRequest,
        output: dict[str, Any],
        confirmation_required: bool,
        confirmed: bool,
    ) -> int:
        """Write one audit entry for an attempted dispatch."""
        level = self.get_level(request.channel_type, request.channel_id, request.user_id, request.type)
        entry_id = self.store.log_audit(
            session_id=request.session_id,
            channel_type=request.channel_type,
            channel_id=request.channel_id,
            user_id=request.user_id,
            action_type=request.type,
            operation=request.operation,
            input=request.params,
            output=output,
            permission_level=level,
            confirmation_required=confirmation_required,
            confirmed=confirmed,
        )
        logger.info(
            f"Audit #{entry_id}: {request.action} by {request.user_id} "
            f"(confirmation_required={confirmation_required}, confirmed={confirmed})"
        )
        return entry_id
