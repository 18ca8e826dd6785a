from __future__ import annotations

import uuid
from datetime import datetime, timezone


class SystemClock:
    """UTC wall clock stamped on workflows, tasks, log entries and screenshots."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class UuidIdGenerator:
    """Random short ids: ``wf-`` for workflows, ``task-`` as the task id suffix."""

    def __init__(self, *, length: int = 12) -> None:
        self._length = length

    def new_workflow_id(self) -> str:
        return self._make("wf")

    def new_task_id(self) -> str:
        return self._make("task")

    def _make(self, prefix: str) -> str:
        return f"{prefix}-{uuid.uuid4().hex[:self._length]}"
