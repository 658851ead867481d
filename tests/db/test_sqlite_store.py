"""Tests for the SQLite store."""

from agentpilot.db.store import SQLiteStore


class TestSessions:
    def test_one_session_per_identity(self, store):
        first = store.get_or_create_session("telegram", "chat1", "u1")
        again = store.get_or_create_session("telegram", "chat1", "u1")
        other = store.get_or_create_session("telegram", "chat1", "u2")

        assert first.id == again.id
        assert other.id != first.id
        assert store.get_session(first.id).user_id == "u1"
        assert len(store.list_sessions()) == 2

    def test_sessions_survive_reopen(self, tmp_path):
        path = tmp_path / "db" / "a.db"
        session = SQLiteStore(path).get_or_create_session("cli", "direct", "me")

        assert SQLiteStore(path).get_session_by_channel("cli", "direct", "me").id == session.id

    def test_unknown_session(self, store):
        assert store.get_session("nope") is None
        assert store.get_session_by_channel("cli", "x", "y") is None


class TestMessages:
    def test_history_is_oldest_first_and_limited_to_most_recent(self, store):
        session = store.get_or_create_session("cli", "direct", "me")
        for i in range(5):
            store.add_message(session.id, "user", f"m{i}")

        assert [m.content for m in store.get_messages(session.id)] == ["m0", "m1", "m2", "m3", "m4"]
        assert [m.content for m in store.get_messages(session.id, limit=2)] == ["m3", "m4"]

    def test_history_is_per_session(self, store):
        a = store.get_or_create_session("cli", "direct", "a")
        b = store.get_or_create_session("cli", "direct", "b")
        store.add_message(a.id, "user", "for a")

        assert store.get_messages(b.id) == []
        assert store.get_messages(a.id)[0].to_chat() == {"role": "user", "content": "for a"}


class TestPermissions:
    def test_user_rule_before_channel_rule(self, store):
        store.set_permission("telegram", "chat1", "shell", 0)
        store.set_permission("telegram", "chat1", "shell", 3, user_id="u1")

        assert store.get_permission("telegram", "chat1", "shell", user_id="u1") == 3
        assert store.get_permission("telegram", "chat1", "shell", user_id="u2") == 0
        assert store.get_permission("telegram", "chat1", "shell") == 0
        assert store.get_permission("telegram", "chat1", "files", user_id="u1") is None

    def test_set_replaces_same_scope(self, store):
        store.set_permission("telegram", "chat1", "notes", 1, user_id="u1")
        rule = store.set_permission("telegram", "chat1", "notes", 2, user_id="u1")

        rules = store.list_permissions()
        assert [(r.id, r.level) for r in rules] == [(rule.id, 2)]

    def test_list_filter_and_delete(self, store):
        rule = store.set_permission("telegram", "chat1", "notes", 2)
        store.set_permission("discord", "guild", "notes", 2)

        assert [r.channel_type for r in store.list_permissions("telegram")] == ["telegram"]
        assert store.list_permissions("telegram")[0].user_id is None
        assert store.delete_permission(rule.id) is True
        assert store.delete_permission(rule.id) is False
        assert len(store.list_permissions()) == 1


class TestAuditLog:
    def _log(self, store, operation, **overrides):
        fields = dict(
            session_id="s1",
            channel_type="telegram",
            channel_id="chat1",
            user_id="u1",
            action_type="files",
            operation=operation,
            input={"path": "/tmp/x"},
            output={"success": True},
            permission_level=2,
            confirmation_required=False,
            confirmed=True,
        )
        fields.update(overrides)
        return store.log_audit(**fields)

    def test_entries_are_newest_first_with_json_payloads(self, store):
        self._log(store, "read_file")
        last = self._log(store, "delete_file", confirmation_required=True, confirmed=False)

        entries = store.get_audit_log()
        assert [e.operation for e in entries] == ["delete_file", "read_file"]
        assert entries[0].id == last
        assert entries[0].input == {"path": "/tmp/x"}
        assert entries[0].output == {"success": True}
        assert entries[0].confirmation_required is True
        assert entries[0].confirmed is False

    def test_pagination(self, store):
        for i in range(5):
            self._log(store, f"op{i}")

        page = store.get_audit_log(limit=2, offset=1)
        assert [e.operation for e in page] == ["op3", "op2"]


class TestScheduledTasks:
    def test_create_and_lookup(self, store):
        task = store.create_scheduled_task("daily", "0 9 * * *", "summarize", "telegram", "chat1", "u1")

        loaded = store.get_scheduled_task(task.id)
        assert loaded.name == "daily"
        assert loaded.enabled is True
        assert loaded.last_run is None
        assert len(task.id) == 12

    def test_enabled_filter_and_owner_filter(self, store):
        a = store.create_scheduled_task("a", "* * * * *", "p", "telegram", "chat1", "u1")
        store.create_scheduled_task("b", "* * * * *", "p", "telegram", "chat1", "u2")

        assert store.set_scheduled_task_enabled(a.id, False) is True
        assert [t.name for t in store.get_scheduled_tasks()] == ["b"]
        assert [t.name for t in store.get_all_scheduled_tasks(user_id="u1")] == ["a"]
        assert len(store.get_all_scheduled_tasks()) == 2

    def test_owner_filter_includes_channel(self, store):
        store.create_scheduled_task("tg", "* * * * *", "p", "telegram", "chat1", "u1")
        store.create_scheduled_task("dc", "* * * * *", "p", "discord", "chat1", "u1")

        scoped = store.get_all_scheduled_tasks(user_id="u1", channel_type="discord", channel_id="chat1")

        assert [t.name for t in scoped] == ["dc"]
        assert len(store.get_all_scheduled_tasks(user_id="u1")) == 2

    def test_last_run_and_delete(self, store):
        task = store.create_scheduled_task("a", "* * * * *", "p", "cli", "direct", "me")

        store.update_scheduled_task_last_run(task.id)
        assert store.get_scheduled_task(task.id).last_run is not None

        assert store.delete_scheduled_task(task.id) is True
        assert store.delete_scheduled_task(task.id) is False
        assert store.set_scheduled_task_enabled(task.id, True) is False


def test_stats_count_rows(store):
    session = store.get_or_create_session("cli", "direct", "me")
    store.add_message(session.id, "user", "hi")

    stats = store.get_stats()
    assert stats["sessions"] == 1
    assert stats["messages"] == 1
    assert stats["audit_log"] == 0
