from __future__ import annotations

import sqlite3

from domain.models import Workflow, WorkflowStatus

from ._datetime import dt_to_iso, iso_to_dt


class SQLiteWorkflowRepository:
    """
    SQLite-backed implementation of ``WorkflowRepositoryPort``.

    One row per workflow; counters are overwritten on every update.
    """

    _SCHEMA_SQL = """\
    CREATE TABLE IF NOT EXISTS workflows (
        id                      TEXT PRIMARY KEY,
        user_id                 TEXT NOT NULL,
        search_query            TEXT NOT NULL,
        status                  TEXT NOT NULL,
        total_jobs              INTEGER NOT NULL DEFAULT 0,
        processed_jobs          INTEGER NOT NULL DEFAULT 0,
        successful_applications INTEGER NOT NULL DEFAULT 0,
        failed_applications     INTEGER NOT NULL DEFAULT 0,
        created_at              TEXT,
        updated_at              TEXT
    );
    """

    _COLUMNS = (
        "id, user_id, search_query, status, total_jobs, processed_jobs, "
        "successful_applications, failed_applications, created_at, updated_at"
    )

    def __init__(self, db_path: str = ":memory:") -> None:
        self._conn = sqlite3.connect(db_path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(self._SCHEMA_SQL)

    def __enter__(self) -> "SQLiteWorkflowRepository":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def add(self, workflow: Workflow) -> None:
        self._conn.execute(
            f"INSERT INTO workflows ({self._COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            self._to_row(workflow),
        )
        self._conn.commit()

    def update(self, workflow: Workflow) -> None:
        self._conn.execute(
            "UPDATE workflows SET "
            "user_id=?, search_query=?, status=?, total_jobs=?, processed_jobs=?, "
            "successful_applications=?, failed_applications=?, created_at=?, updated_at=? "
            "WHERE id=?",
            (*self._to_row(workflow)[1:], workflow.id),
        )
        self._conn.commit()

    def get(self, workflow_id: str) -> Workflow | None:
        row = self._conn.execute(
            f"SELECT {self._COLUMNS} FROM workflows WHERE id = ?",
            (workflow_id,),
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def close(self) -> None:
        self._conn.close()

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _to_row(w: Workflow) -> tuple[object, ...]:
        return (
            w.id,
            w.user_id,
            w.search_query,
            w.status.value,
            w.total_jobs,
            w.processed_jobs,
            w.successful_applications,
            w.failed_applications,
            dt_to_iso(w.created_at),
            dt_to_iso(w.updated_at),
        )

    @staticmethod
    def _from_row(row: tuple[object, ...]) -> Workflow:
        return Workflow(
            id=str(row[0]),
            user_id=str(row[1]),
            search_query=str(row[2]),
            status=WorkflowStatus(row[3]),
            total_jobs=int(row[4]),
            processed_jobs=int(row[5]),
            successful_applications=int(row[6]),
            failed_applications=int(row[7]),
            created_at=iso_to_dt(row[8]),
            updated_at=iso_to_dt(row[9]),
        )
