from __future__ import annotations

import os
from typing import Generator

import pytest

from infra.persistence import SQLiteLogRepository, SQLiteTaskRepository, SQLiteWorkflowRepository


@pytest.fixture()
def pipeline_db(tmp_path: str) -> Generator[str, None, None]:
    """Path of a fresh SQLite file shared by all three repositories."""
    db = os.path.join(tmp_path, "pipeline.db")
    for repo_type in (SQLiteWorkflowRepository, SQLiteTaskRepository, SQLiteLogRepository):
        repo_type(db).close()
    yield db
