"""PostgreSQL-backed task store with automatic table migration."""

from __future__ import annotations

import json
import threading
from datetime import UTC, datetime
from typing import Any

from agentcast.storage.models import TERMINAL_STATUSES, Message, Task, TaskStatus


class PostgresTaskStore:
    """Persist tasks and their conversation steps in PostgreSQL."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("AGENTCAST_DATABASE_URL is required")
        self.database_url = database_url
        self._lock = threading.Lock()
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()

    def migrate(self) -> None:
        with self._lock, self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id BIGSERIAL PRIMARY KEY,
                    prompt TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at TIMESTAMPTZ NOT NULL,
                    completed_at TIMESTAMPTZ
                )
                """)
            # task_id is deliberately not a foreign key; orphan writes are accepted.
            conn.execute("""
                CREATE TABLE IF NOT EXISTS task_messages (
                    id BIGSERIAL PRIMARY KEY,
                    task_id BIGINT NOT NULL,
                    agent TEXT NOT NULL,
                    message TEXT NOT NULL,
                    message_type TEXT NOT NULL,
                    timestamp TIMESTAMPTZ NOT NULL,
                    metadata JSONB
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_task_messages_task_id
                ON task_messages(task_id, timestamp, id)
                """)
            conn.commit()

    def create_task(self, prompt: str) -> Task:
        now = datetime.now(tz=UTC)
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                INSERT INTO tasks (prompt, status, created_at, completed_at)
                VALUES (%s, %s, %s, %s)
                RETURNING *
                """,
                (prompt, "pending", now, None),
            ).fetchone()
            conn.commit()
        if row is None:
            raise RuntimeError("Failed to persist task")
        return self._row_to_task(row)

    def get_task(self, task_id: int) -> Task | None:
        with self._lock, self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = %s", (task_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def update_task_status(
        self,
        task_id: int,
        status: TaskStatus,
        completed_at: datetime | None = None,
    ) -> Task | None:
        next_completed_at = completed_at if status in TERMINAL_STATUSES else None
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                UPDATE tasks
                SET status = %s,
                    completed_at = %s
                WHERE id = %s
                RETURNING *
                """,
                (status, next_completed_at, task_id),
            ).fetchone()
            conn.commit()
        if row is None:
            return None
        return self._row_to_task(row)

    def create_message(
        self,
        task_id: int,
        agent: str,
        message: str,
        message_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        now = datetime.now(tz=UTC)
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                INSERT INTO task_messages (
                    task_id,
                    agent,
                    message,
                    message_type,
                    timestamp,
                    metadata
                ) VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    task_id,
                    agent,
                    message,
                    message_type,
                    now,
                    self._json_wrapper(metadata) if metadata is not None else None,
                ),
            ).fetchone()
            conn.commit()
        if row is None:
            raise RuntimeError("Failed to persist task message")
        return self._row_to_message(row)

    def get_task_messages(self, task_id: int) -> list[Message]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM task_messages
                WHERE task_id = %s
                ORDER BY timestamp ASC, id ASC
                """,
                (task_id,),
            ).fetchall()
        return [self._row_to_message(row) for row in rows]

    def get_latest_message(self, task_id: int) -> Message | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                SELECT *
                FROM task_messages
                WHERE task_id = %s
                ORDER BY timestamp DESC, id DESC
                LIMIT 1
                """,
                (task_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_message(row)

    def _connect(self) -> Any:
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Json
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row, Json

    @staticmethod
    def _parse_json_optional(raw: Any) -> dict[str, Any] | None:
        if raw is None:
            return None
        if isinstance(raw, str):
            parsed = json.loads(raw)
        else:
            parsed = raw
        if isinstance(parsed, dict):
            return parsed
        return None

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime:
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            return datetime.fromisoformat(raw)
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @classmethod
    def _row_to_task(cls, row: Any) -> Task:
        completed_raw = row.get("completed_at")
        return Task(
            id=int(row["id"]),
            prompt=row["prompt"],
            status=row["status"],
            created_at=cls._parse_datetime(row["created_at"]),
            completed_at=cls._parse_datetime(completed_raw) if completed_raw is not None else None,
        )

    @classmethod
    def _row_to_message(cls, row: Any) -> Message:
        return Message(
            id=int(row["id"]),
            task_id=int(row["task_id"]),
            agent=str(row["agent"]),
            message=str(row["message"]),
            message_type=str(row["message_type"]),
            timestamp=cls._parse_datetime(row["timestamp"]),
            metadata=cls._parse_json_optional(row.get("metadata")),
        )
