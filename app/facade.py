from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from domain.models import (
    DEFAULT_MAX_RETRIES,
    TASK_PRIORITIES,
    LogEntry,
    Task,
    TaskStatus,
    TaskType,
    Workflow,
)
from domain.ports import (
    ClockPort,
    IdGeneratorPort,
    LogRepositoryPort,
    TaskRepositoryPort,
    WorkflowRepositoryPort,
)

RECENT_LOG_LIMIT = 10
_FINISHED_TASK_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})


class UnknownWorkflowError(LookupError):
    """Raised when a workflow id has no stored record."""


@dataclass(frozen=True)
class WorkflowProgress:
    workflow: Workflow
    task_counts: Mapping[str, int] = field(default_factory=dict)
    total_tasks: int = 0
    progress_percent: int = 0
    recent_logs: Sequence[LogEntry] = field(default_factory=tuple)


class WorkflowFacade:
    """
    UI-facing facade: create workflows, report their progress.

    Running a workflow is left to the orchestrator; this class only reads
    and seeds the repositories.
    """

    def __init__(
        self,
        *,
        workflow_repo: WorkflowRepositoryPort,
        task_repo: TaskRepositoryPort,
        log_repo: LogRepositoryPort,
        clock: ClockPort,
        id_generator: IdGeneratorPort,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        self._workflow_repo = workflow_repo
        self._task_repo = task_repo
        self._log_repo = log_repo
        self._clock = clock
        self._id_generator = id_generator
        self._max_retries = max_retries

    def create_workflow(
        self,
        *,
        user_id: str,
        search_query: str,
        job_urls: Sequence[str],
    ) -> Workflow:
        """Store a new workflow with one discovery task per job URL."""
        if not job_urls:
            raise ValueError("At least one job URL is required")

        now = self._clock.now()
        workflow = Workflow(
            id=self._id_generator.new_workflow_id(),
            user_id=user_id,
            search_query=search_query,
            total_jobs=len(job_urls),
            created_at=now,
            updated_at=now,
        )
        self._workflow_repo.add(workflow)

        for index, url in enumerate(job_urls):
            job_id = f"job-{index}"
            self._task_repo.add(
                Task(
                    id=f"{TaskType.SITE_DISCOVERY.value}-{job_id}-{self._id_generator.new_task_id()}",
                    workflow_id=workflow.id,
                    type=TaskType.SITE_DISCOVERY,
                    job_id=job_id,
                    job_url=url,
                    payload={"jobUrl": url},
                    priority=TASK_PRIORITIES[TaskType.SITE_DISCOVERY],
                    max_retries=self._max_retries,
                    created_at=now,
                    updated_at=now,
                )
            )
        return workflow

    def get_workflow(self, workflow_id: str) -> Workflow:
        workflow = self._workflow_repo.get(workflow_id)
        if workflow is None:
            raise UnknownWorkflowError(f"Workflow not found: {workflow_id}")
        return workflow

    def get_progress(self, workflow_id: str) -> WorkflowProgress:
        workflow = self.get_workflow(workflow_id)
        tasks = self._task_repo.list_for_workflow(workflow_id)
        counts = Counter(task.status.value for task in tasks)
        finished = sum(1 for task in tasks if task.status in _FINISHED_TASK_STATUSES)
        percent = round(finished / len(tasks) * 100) if tasks else 0
        return WorkflowProgress(
            workflow=workflow,
            task_counts=dict(counts),
            total_tasks=len(tasks),
            progress_percent=percent,
            recent_logs=tuple(
                self._log_repo.list_for_workflow(
                    workflow_id, limit=RECENT_LOG_LIMIT, newest_first=True,
                )
            ),
        )

    def list_tasks(self, workflow_id: str) -> Sequence[Task]:
        self.get_workflow(workflow_id)
        return self._task_repo.list_for_workflow(workflow_id)

    def list_logs(self, workflow_id: str, *, limit: int | None = None) -> Sequence[LogEntry]:
        self.get_workflow(workflow_id)
        return self._log_repo.list_for_workflow(workflow_id, limit=limit)
