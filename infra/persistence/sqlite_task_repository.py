from __future__ import annotations

import json
import sqlite3
from typing import Sequence

from domain.models import AgentResult, Task, TaskStatus, TaskType

from ._datetime import dt_to_iso, iso_to_dt


class SQLiteTaskRepository:
    """
    SQLite-backed implementation of ``TaskRepositoryPort``.

    Payloads and results are stored as JSON text. ``seq`` is an
    autoincrement column used to break ordering ties by insertion order.
    """

    _SCHEMA_SQL = """\
    CREATE TABLE IF NOT EXISTS tasks (
        seq            INTEGER PRIMARY KEY AUTOINCREMENT,
        id             TEXT NOT NULL UNIQUE,
        workflow_id    TEXT NOT NULL,
        type           TEXT NOT NULL,
        job_id         TEXT NOT NULL,
        job_url        TEXT NOT NULL,
        payload        TEXT NOT NULL DEFAULT '{}',
        priority       INTEGER NOT NULL DEFAULT 0,
        max_retries    INTEGER NOT NULL,
        current_retry  INTEGER NOT NULL DEFAULT 0,
        status         TEXT NOT NULL,
        result         TEXT,
        assigned_agent TEXT,
        created_at     TEXT,
        updated_at     TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_tasks_workflow_status
        ON tasks (workflow_id, status);
    """

    _COLUMNS = (
        "id, workflow_id, type, job_id, job_url, payload, priority, max_retries, "
        "current_retry, status, result, assigned_agent, created_at, updated_at"
    )

    def __init__(self, db_path: str = ":memory:") -> None:
        self._conn = sqlite3.connect(db_path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(self._SCHEMA_SQL)

    def __enter__(self) -> "SQLiteTaskRepository":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def add(self, task: Task) -> None:
        self._conn.execute(
            f"INSERT INTO tasks ({self._COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            self._to_row(task),
        )
        self._conn.commit()

    def update(self, task: Task) -> None:
        self._conn.execute(
            "UPDATE tasks SET "
            "workflow_id=?, type=?, job_id=?, job_url=?, payload=?, priority=?, "
            "max_retries=?, current_retry=?, status=?, result=?, assigned_agent=?, "
            "created_at=?, updated_at=? "
            "WHERE id=?",
            (*self._to_row(task)[1:], task.id),
        )
        self._conn.commit()

    def get(self, task_id: str) -> Task | None:
        row = self._conn.execute(
            f"SELECT {self._COLUMNS} FROM tasks WHERE id = ?",
            (task_id,),
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def next_pending(self, workflow_id: str) -> Task | None:
        row = self._conn.execute(
            f"SELECT {self._COLUMNS} FROM tasks "
            "WHERE workflow_id = ? AND status = ? "
            "ORDER BY priority DESC, created_at ASC, seq ASC LIMIT 1",
            (workflow_id, TaskStatus.PENDING.value),
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def has_pending(self, workflow_id: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM tasks WHERE workflow_id = ? AND status = ? LIMIT 1",
            (workflow_id, TaskStatus.PENDING.value),
        ).fetchone()
        return row is not None

    def list_for_workflow(self, workflow_id: str) -> Sequence[Task]:
        rows = self._conn.execute(
            f"SELECT {self._COLUMNS} FROM tasks WHERE workflow_id = ? ORDER BY seq ASC",
            (workflow_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def close(self) -> None:
        self._conn.close()

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _to_row(t: Task) -> tuple[object, ...]:
        return (
            t.id,
            t.workflow_id,
            t.type.value,
            t.job_id,
            t.job_url,
            json.dumps(dict(t.payload), default=str),
            t.priority,
            t.max_retries,
            t.current_retry,
            t.status.value,
            json.dumps(t.result.to_dict(), default=str) if t.result else None,
            t.assigned_agent,
            dt_to_iso(t.created_at),
            dt_to_iso(t.updated_at),
        )

    @staticmethod
    def _from_row(row: tuple[object, ...]) -> Task:
        return Task(
            id=str(row[0]),
            workflow_id=str(row[1]),
            type=TaskType(row[2]),
            job_id=str(row[3]),
            job_url=str(row[4]),
            payload=json.loads(str(row[5] or "{}")),
            priority=int(row[6]),
            max_retries=int(row[7]),
            current_retry=int(row[8]),
            status=TaskStatus(row[9]),
            result=AgentResult.from_dict(json.loads(str(row[10]))) if row[10] else None,
            assigned_agent=str(row[11]) if row[11] else None,
            created_at=iso_to_dt(row[12]),
            updated_at=iso_to_dt(row[13]),
        )
