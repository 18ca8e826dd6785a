from __future__ import annotations

import sqlite3
from typing import Sequence

from domain.models import LogEntry, LogLevel

from ._datetime import dt_to_iso, iso_to_dt


class SQLiteLogRepository:
    """Append-only SQLite store for the workflow log trail."""

    _SCHEMA_SQL = """\
    CREATE TABLE IF NOT EXISTS workflow_logs (
        seq         INTEGER PRIMARY KEY AUTOINCREMENT,
        workflow_id TEXT NOT NULL,
        agent       TEXT NOT NULL,
        message     TEXT NOT NULL,
        level       TEXT NOT NULL,
        timestamp   TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_workflow_logs_workflow
        ON workflow_logs (workflow_id);
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._conn = sqlite3.connect(db_path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(self._SCHEMA_SQL)

    def __enter__(self) -> "SQLiteLogRepository":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def append(self, entry: LogEntry) -> None:
        self._conn.execute(
            "INSERT INTO workflow_logs (workflow_id, agent, message, level, timestamp) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                entry.workflow_id,
                entry.agent,
                entry.message,
                entry.level.value,
                dt_to_iso(entry.timestamp),
            ),
        )
        self._conn.commit()

    def list_for_workflow(
        self,
        workflow_id: str,
        *,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> Sequence[LogEntry]:
        order = "DESC" if newest_first else "ASC"
        sql = (
            "SELECT workflow_id, agent, message, level, timestamp FROM workflow_logs "
            f"WHERE workflow_id = ? ORDER BY seq {order}"
        )
        params: tuple[object, ...] = (workflow_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (workflow_id, limit)
        rows = self._conn.execute(sql, params).fetchall()
        return [
            LogEntry(
                workflow_id=str(r[0]),
                agent=str(r[1]),
                message=str(r[2]),
                level=LogLevel(r[3]),
                timestamp=iso_to_dt(r[4]),
            )
            for r in rows
        ]

    def close(self) -> None:
        self._conn.close()
