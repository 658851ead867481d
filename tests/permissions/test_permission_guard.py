"""Tests for level resolution, the destructive gate and audit logging."""

import pytest

from agentpilot.core.errors import PermissionDeniedError
from agentpilot.core.types import ActionRequest, PermissionLevel
from agentpilot.permissions.guard import PermissionGuard, preview_args, required_level


def _request(type="shell", operation="shell_exec", params=None, user_id="u1", channel_id="chat1"):
    return ActionRequest(
        type=type,
        operation=operation,
        params=params or {},
        session_id="s1",
        channel_type="telegram",
        channel_id=channel_id,
        user_id=user_id,
    )


class TestRequiredLevels:
    def test_known_domains(self):
        assert required_level("browser") == PermissionLevel.READ_ONLY
        assert required_level("email") == PermissionLevel.COMMUNICATE
        assert required_level("notes") == PermissionLevel.MODIFY
        assert required_level("shell") == PermissionLevel.EXECUTE

    def test_unknown_domain_requires_admin(self):
        assert required_level("teleport") == PermissionLevel.ADMIN


class TestLevelResolution:
    def test_default_level_applies_without_rules(self, store):
        guard = PermissionGuard(store, default_level=PermissionLevel.COMMUNICATE)
        assert guard.get_level("telegram", "chat1", "u1", "notes") == PermissionLevel.COMMUNICATE

    def test_user_rule_wins_over_channel_rule(self, store):
        store.set_permission("telegram", "chat1", "shell", PermissionLevel.READ_ONLY)
        store.set_permission("telegram", "chat1", "shell", PermissionLevel.EXECUTE, user_id="u1")
        guard = PermissionGuard(store)

        assert guard.get_level("telegram", "chat1", "u1", "shell") == PermissionLevel.EXECUTE
        assert guard.get_level("telegram", "chat1", "u2", "shell") == PermissionLevel.READ_ONLY

    def test_rules_are_scoped_by_domain_and_chat(self, store):
        store.set_permission("telegram", "chat1", "shell", PermissionLevel.EXECUTE, user_id="u1")
        guard = PermissionGuard(store)

        assert guard.get_level("telegram", "chat1", "u1", "files") == PermissionLevel.READ_ONLY
        assert guard.get_level("telegram", "chat2", "u1", "shell") == PermissionLevel.READ_ONLY


class TestCheck:
    def test_user_with_execute_needs_confirmation_for_shell(self, store):
        store.set_permission("telegram", "chat1", "shell", PermissionLevel.READ_ONLY)
        store.set_permission("telegram", "chat1", "shell", PermissionLevel.EXECUTE, user_id="u1")
        guard = PermissionGuard(store)

        check = guard.check(_request(params={"command": "ls"}))

        assert check.allowed is True
        assert check.confirmation_required is True
        assert check.confirmation_message == (
            'Action "shell_exec" on shell requires your confirmation.\nDetails: {"command": "ls"}'
        )

    def test_other_user_is_denied(self, store):
        store.set_permission("telegram", "chat1", "shell", PermissionLevel.READ_ONLY)
        store.set_permission("telegram", "chat1", "shell", PermissionLevel.EXECUTE, user_id="u1")
        guard = PermissionGuard(store)

        with pytest.raises(PermissionDeniedError) as exc:
            guard.check(_request(user_id="u2"))

        assert exc.value.code == "PERMISSION_DENIED"
        assert exc.value.required_level == 3
        assert exc.value.current_level == 0

    def test_non_destructive_allowed_without_confirmation(self, store):
        guard = PermissionGuard(store)

        check = guard.check(_request(type="browser", operation="web_search"))

        assert check.allowed is True
        assert check.confirmation_required is False
        assert check.confirmation_message is None

    @pytest.mark.parametrize(
        "type,operation",
        [("email", "send_email"), ("files", "delete_file"), ("shell", "shell_exec")],
    )
    def test_destructive_operations_confirm_even_at_admin(self, store, type, operation):
        guard = PermissionGuard(store, default_level=PermissionLevel.ADMIN)

        assert guard.check(_request(type=type, operation=operation)).confirmation_required is True

    def test_configured_extra_confirmations(self, store):
        guard = PermissionGuard(store, default_level=PermissionLevel.ADMIN, confirm_operations=["write_file"])

        assert guard.check(_request(type="files", operation="write_file")).confirmation_required is True
        assert guard.check(_request(type="files", operation="read_file")).confirmation_required is False

    def test_level_gate_runs_before_destructive_gate(self, store):
        guard = PermissionGuard(store, default_level=PermissionLevel.MODIFY)

        with pytest.raises(PermissionDeniedError):
            guard.check(_request(type="shell", operation="shell_exec"))


class TestAudit:
    def test_log_action_records_effective_level(self, store):
        store.set_permission("telegram", "chat1", "shell", PermissionLevel.EXECUTE, user_id="u1")
        guard = PermissionGuard(store)

        entry_id = guard.log_action(_request(params={"command": "ls"}), {"success": True}, True, True)

        entry = store.get_audit_log()[0]
        assert entry.id == entry_id
        assert entry.action_type == "shell"
        assert entry.operation == "shell_exec"
        assert entry.input == {"command": "ls"}
        assert entry.output == {"success": True}
        assert entry.permission_level == PermissionLevel.EXECUTE
        assert entry.confirmation_required is True
        assert entry.confirmed is True


def test_preview_args_is_truncated():
    preview = preview_args({"body": "x" * 500})
    assert len(preview) == 203
    assert preview.endswith("...")
