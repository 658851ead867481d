"""SQLite store for sessions, conversation history, permissions, audit and scheduled tasks."""

import json
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger


@dataclass
class Session:
    id: str
    channel_type: str
    channel_id: str
    user_id: str
    created_at: str
    updated_at: str


@dataclass
class ConversationMessage:
    id: int
    session_id: str
    role: str  # user, assistant, system
    content: str
    created_at: str

    def to_chat(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class PermissionRule:
    id: int
    channel_type: str
    channel_id: str
    user_id: str | None
    action_type: str
    level: int
    created_at: str


@dataclass
class AuditEntry:
    id: int
    session_id: str | None
    channel_type: str
    channel_id: str
    user_id: str
    action_type: str
    operation: str
    input: Any
    output: Any
    permission_level: int
    confirmation_required: bool
    confirmed: bool
    created_at: str


@dataclass
class ScheduledTask:
    id: str
    name: str
    cron_expression: str
    prompt: str
    channel_type: str
    channel_id: str
    user_id: str
    enabled: bool
    last_run: str | None
    created_at: str


def _now() -> str:
    return datetime.now().isoformat()


def _loads(value: str | None) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


class SQLiteStore:
    """
    Single-file SQLite repository for everything the gateway persists.

    Every method opens a short-lived connection, so the store can be shared
    freely between the agent loop, the scheduler and the CLI.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Initialize database tables."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    channel_type TEXT NOT NULL,
                    channel_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (channel_type, channel_id, user_id)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (session_id) REFERENCES sessions(id)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS permissions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    channel_type TEXT NOT NULL,
                    channel_id TEXT NOT NULL,
                    user_id TEXT,
                    action_type TEXT NOT NULL,
                    level INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            # Append-only: nothing in the gateway updates or deletes audit rows
            conn.execute("""
                CREATE TABLE IF NOT EXISTS audit_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT,
                    channel_type TEXT NOT NULL,
                    channel_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    action_type TEXT NOT NULL,
                    operation TEXT NOT NULL,
                    input TEXT,
                    output TEXT,
                    permission_level INTEGER NOT NULL,
                    confirmation_required INTEGER NOT NULL DEFAULT 0,
                    confirmed INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS scheduled_tasks (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    cron_expression TEXT NOT NULL,
                    prompt TEXT NOT NULL,
                    channel_type TEXT NOT NULL,
                    channel_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    enabled INTEGER NOT NULL DEFAULT 1,
                    last_run TEXT,
                    created_at TEXT NOT NULL
                )
            """)

            conn.execute("CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(session_id)")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_permissions_scope "
                "ON permissions(channel_type, channel_id, action_type)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_created ON audit_log(created_at)")

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper cleanup."""
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    # ── Sessions ──────────────────────────────────────────────

    def create_session(self, channel_type: str, channel_id: str, user_id: str) -> Session:
        """Create a session for an identity. Fails if one already exists."""
        now = _now()
        session = Session(
            id=uuid.uuid4().hex,
            channel_type=channel_type,
            channel_id=channel_id,
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )
        with self._get_connection() as conn:
            conn.execute(
                """INSERT INTO sessions (id, channel_type, channel_id, user_id, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (session.id, channel_type, channel_id, user_id, now, now),
            )
            conn.commit()
        logger.debug(f"Created session {session.id} for {channel_type}:{channel_id}:{user_id}")
        return session

    def get_session(self, session_id: str) -> Session | None:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return Session(**dict(row)) if row else None

    def get_session_by_channel(self, channel_type: str, channel_id: str, user_id: str) -> Session | None:
        """Look up the session owned by an identity."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM sessions WHERE channel_type = ? AND channel_id = ? AND user_id = ?",
                (channel_type, channel_id, user_id),
            ).fetchone()
        return Session(**dict(row)) if row else None

    def get_or_create_session(self, channel_type: str, channel_id: str, user_id: str) -> Session:
        """
        Resolve the one session for an identity, creating it on first contact.

        The UNIQUE constraint on the identity means a concurrent creator loses
        the insert and picks up the winner's row instead of duplicating it.
        """
        existing = self.get_session_by_channel(channel_type, channel_id, user_id)
        if existing:
            return existing
        try:
            return self.create_session(channel_type, channel_id, user_id)
        except sqlite3.IntegrityError:
            session = self.get_session_by_channel(channel_type, channel_id, user_id)
            if session is None:
                raise
            return session

    def list_sessions(self, limit: int = 50) -> list[Session]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM sessions ORDER BY updated_at DESC LIMIT ?", (limit,)
            ).fetchall()
        return [Session(**dict(row)) for row in rows]

    # ── Messages ──────────────────────────────────────────────

    def add_message(self, session_id: str, role: str, content: str) -> ConversationMessage:
        """Append a message to a session's history."""
        now = _now()
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO messages (session_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                (session_id, role, content, now),
            )
            conn.execute("UPDATE sessions SET updated_at = ? WHERE id = ?", (now, session_id))
            conn.commit()
            message_id = cursor.lastrowid
        return ConversationMessage(
            id=message_id, session_id=session_id, role=role, content=content, created_at=now
        )

    def get_messages(self, session_id: str, limit: int = 100) -> list[ConversationMessage]:
        """Return the most recent `limit` messages, oldest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """SELECT * FROM (
                       SELECT * FROM messages WHERE session_id = ?
                       ORDER BY id DESC LIMIT ?
                   ) ORDER BY id ASC""",
                (session_id, limit),
            ).fetchall()
        return [ConversationMessage(**dict(row)) for row in rows]

    # ── Permissions ───────────────────────────────────────────

    def set_permission(
        self,
        channel_type: str,
        channel_id: str,
        action_type: str,
        level: int,
        user_id: str | None = None,
    ) -> PermissionRule:
        """Set the level for a scope, replacing any existing rule for the same scope."""
        now = _now()
        with self._get_connection() as conn:
            if user_id is None:
                conn.execute(
                    """DELETE FROM permissions
                       WHERE channel_type = ? AND channel_id = ? AND user_id IS NULL AND action_type = ?""",
                    (channel_type, channel_id, action_type),
                )
            else:
                conn.execute(
                    """DELETE FROM permissions
                       WHERE channel_type = ? AND channel_id = ? AND user_id = ? AND action_type = ?""",
                    (channel_type, channel_id, user_id, action_type),
                )
            cursor = conn.execute(
                """INSERT INTO permissions (channel_type, channel_id, user_id, action_type, level, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (channel_type, channel_id, user_id, action_type, int(level), now),
            )
            conn.commit()
            rule_id = cursor.lastrowid
        return PermissionRule(
            id=rule_id,
            channel_type=channel_type,
            channel_id=channel_id,
            user_id=user_id,
            action_type=action_type,
            level=int(level),
            created_at=now,
        )

    def get_permission(
        self,
        channel_type: str,
        channel_id: str,
        action_type: str,
        user_id: str | None = None,
    ) -> int | None:
        """
        Resolve the configured level for a scope.

        A user-scoped rule wins over the channel-wide rule (one stored with no
        user). Returns None when neither exists so the caller can apply its default.
        """
        with self._get_connection() as conn:
            if user_id is not None:
                row = conn.execute(
                    """SELECT level FROM permissions
                       WHERE channel_type = ? AND channel_id = ? AND user_id = ? AND action_type = ?
                       ORDER BY id DESC LIMIT 1""",
                    (channel_type, channel_id, user_id, action_type),
                ).fetchone()
                if row:
                    return row["level"]
            row = conn.execute(
                """SELECT level FROM permissions
                   WHERE channel_type = ? AND channel_id = ? AND user_id IS NULL AND action_type = ?
                   ORDER BY id DESC LIMIT 1""",
                (channel_type, channel_id, action_type),
            ).fetchone()
        return row["level"] if row else None

    def list_permissions(self, channel_type: str | None = None) -> list[PermissionRule]:
        with self._get_connection() as conn:
            if channel_type:
                rows = conn.execute(
                    "SELECT * FROM permissions WHERE channel_type = ? ORDER BY id", (channel_type,)
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM permissions ORDER BY id").fetchall()
        return [PermissionRule(**dict(row)) for row in rows]

    def delete_permission(self, rule_id: int) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM permissions WHERE id = ?", (rule_id,))
            conn.commit()
            return cursor.rowcount > 0

    # ── Audit ─────────────────────────────────────────────────

    def log_audit(
        self,
        *,
        session_id: str | None,
        channel_type: str,
        channel_id: str,
        user_id: str,
        action_type: str,
        operation: str,
        input: Any,
        output: Any,
        permission_level: int,
        confirmation_required: bool,
        confirmed: bool,
    ) -> int:
        """Append one audit entry and return its id."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """INSERT INTO audit_log
                   (session_id, channel_type, channel_id, user_id, action_type, operation,
                    input, output, permission_level, confirmation_required, confirmed, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    session_id,
                    channel_type,
                    channel_id,
                    user_id,
                    action_type,
                    operation,
                    json.dumps(input, default=str),
                    json.dumps(output, default=str),
                    int(permission_level),
                    int(confirmation_required),
                    int(confirmed),
                    _now(),
                ),
            )
            conn.commit()
            return cursor.lastrowid

    def get_audit_log(self, limit: int = 50, offset: int = 0) -> list[AuditEntry]:
        """Most recent entries first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM audit_log ORDER BY id DESC LIMIT ? OFFSET ?", (limit, offset)
            ).fetchall()
        entries = []
        for row in rows:
            data = dict(row)
            data["input"] = _loads(data["input"])
            data["output"] = _loads(data["output"])
            data["confirmation_required"] = bool(data["confirmation_required"])
            data["confirmed"] = bool(data["confirmed"])
            entries.append(AuditEntry(**data))
        return entries

    # ── Scheduled tasks ───────────────────────────────────────

    def create_scheduled_task(
        self,
        name: str,
        cron_expression: str,
        prompt: str,
        channel_type: str,
        channel_id: str,
        user_id: str,
    ) -> ScheduledTask:
        task = ScheduledTask(
            id=uuid.uuid4().hex[:12],
            name=name,
            cron_expression=cron_expression,
            prompt=prompt,
            channel_type=channel_type,
            channel_id=channel_id,
            user_id=user_id,
            enabled=True,
            last_run=None,
            created_at=_now(),
        )
        with self._get_connection() as conn:
            conn.execute(
                """INSERT INTO scheduled_tasks
                   (id, name, cron_expression, prompt, channel_type, channel_id, user_id,
                    enabled, last_run, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, 1, NULL, ?)""",
                (task.id, name, cron_expression, prompt, channel_type, channel_id, user_id, task.created_at),
            )
            conn.commit()
        logger.info(f"Scheduled task '{name}' ({task.id}) created: {cron_expression}")
        return task

    def get_scheduled_tasks(self) -> list[ScheduledTask]:
        """Enabled tasks only."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM scheduled_tasks WHERE enabled = 1 ORDER BY created_at"
            ).fetchall()
        return [self._task_from_row(row) for row in rows]

    def get_all_scheduled_tasks(
        self,
        user_id: str | None = None,
        channel_type: str | None = None,
        channel_id: str | None = None,
    ) -> list[ScheduledTask]:
        """All tasks, enabled or not, optionally narrowed to an owner and channel."""
        filters = {"user_id": user_id, "channel_type": channel_type, "channel_id": channel_id}
        clauses = [f"{column} = ?" for column, value in filters.items() if value is not None]
        params = [value for value in filters.values() if value is not None]
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM scheduled_tasks{where} ORDER BY created_at", params
            ).fetchall()
        return [self._task_from_row(row) for row in rows]

    def get_scheduled_task(self, task_id: str) -> ScheduledTask | None:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM scheduled_tasks WHERE id = ?", (task_id,)).fetchone()
        return self._task_from_row(row) if row else None

    def delete_scheduled_task(self, task_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM scheduled_tasks WHERE id = ?", (task_id,))
            conn.commit()
            return cursor.rowcount > 0

    def update_scheduled_task_last_run(self, task_id: str) -> None:
        with self._get_connection() as conn:
            conn.execute("UPDATE scheduled_tasks SET last_run = ? WHERE id = ?", (_now(), task_id))
            conn.commit()

    def set_scheduled_task_enabled(self, task_id: str, enabled: bool) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE scheduled_tasks SET enabled = ? WHERE id = ?", (int(enabled), task_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    @staticmethod
    def _task_from_row(row: sqlite3.Row) -> ScheduledTask:
        data = dict(row)
        data["enabled"] = bool(data["enabled"])
        return ScheduledTask(**data)

    def get_stats(self) -> dict[str, int]:
        """Row counts per table, for the status command."""
        stats = {}
        with self._get_connection() as conn:
            for table in ("sessions", "messages", "permissions", "audit_log", "scheduled_tasks"):
                stats[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        return stats
