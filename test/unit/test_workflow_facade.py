from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from app import UnknownWorkflowError, WorkflowFacade
from domain.models import LogEntry, LogLevel, TaskStatus, TaskType, WorkflowStatus
from test.mocks import (
    FixedClock,
    InMemoryLogRepository,
    InMemoryTaskRepository,
    InMemoryWorkflowRepository,
    SequentialIdGenerator,
)

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _facade() -> tuple[WorkflowFacade, InMemoryTaskRepository, InMemoryLogRepository]:
    tasks = InMemoryTaskRepository()
    logs = InMemoryLogRepository()
    facade = WorkflowFacade(
        workflow_repo=InMemoryWorkflowRepository(),
        task_repo=tasks,
        log_repo=logs,
        clock=FixedClock(NOW),
        id_generator=SequentialIdGenerator(),
        max_retries=2,
    )
    return facade, tasks, logs


def test_create_workflow_seeds_one_discovery_task_per_url() -> None:
    facade, tasks, _ = _facade()

    workflow = facade.create_workflow(
        user_id="u1",
        search_query="python remote",
        job_urls=["https://a.example/jobs/1", "https://b.example/jobs/2"],
    )

    assert workflow.id == "wf-1"
    assert workflow.status is WorkflowStatus.INITIALIZING
    assert workflow.total_jobs == 2
    assert workflow.processed_jobs == 0
    created = tasks.list_for_workflow(workflow.id)
    assert [t.type for t in created] == [TaskType.SITE_DISCOVERY] * 2
    assert [t.job_id for t in created] == ["job-0", "job-1"]
    assert created[0].id == "site_discovery-job-0-task-2"
    assert created[1].payload == {"jobUrl": "https://b.example/jobs/2"}
    assert all(t.priority == 1 and t.max_retries == 2 for t in created)
    assert facade.get_workflow(workflow.id) == workflow


def test_create_workflow_requires_urls() -> None:
    facade, _, _ = _facade()

    with pytest.raises(ValueError):
        facade.create_workflow(user_id="u1", search_query="q", job_urls=[])


def test_unknown_workflow_raises() -> None:
    facade, _, _ = _facade()

    with pytest.raises(UnknownWorkflowError):
        facade.get_progress("wf-missing")
    with pytest.raises(UnknownWorkflowError):
        facade.list_logs("wf-missing")


def test_progress_counts_finished_tasks_and_recent_logs() -> None:
    facade, tasks, logs = _facade()
    workflow = facade.create_workflow(
        user_id="u1",
        search_query="q",
        job_urls=["https://a/1", "https://a/2", "https://a/3", "https://a/4"],
    )
    first, second, third, _ = tasks.list_for_workflow(workflow.id)
    tasks.update(replace(first, status=TaskStatus.COMPLETED))
    tasks.update(replace(second, status=TaskStatus.FAILED))
    tasks.update(replace(third, status=TaskStatus.IN_PROGRESS))
    for i in range(12):
        logs.append(LogEntry(workflow.id, "orchestrator", f"event {i}", LogLevel.INFO, NOW))

    progress = facade.get_progress(workflow.id)

    assert progress.total_tasks == 4
    assert progress.progress_percent == 50
    assert progress.task_counts == {"completed": 1, "failed": 1, "in_progress": 1, "pending": 1}
    assert len(progress.recent_logs) == 10
    assert progress.recent_logs[0].message == "event 11"
    assert [e.message for e in facade.list_logs(workflow.id, limit=2)] == ["event 0", "event 1"]
