from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping

from domain.models import (
    TASK_PRIORITIES,
    AgentResult,
    CandidateProfile,
    LogEntry,
    LogLevel,
    Task,
    TaskStatus,
    TaskType,
    Workflow,
    WorkflowStatus,
)
from domain.ports import (
    AgentPort,
    BrowserPort,
    ClockPort,
    DecisionServicePort,
    IdGeneratorPort,
    LLMClientPort,
    LoggerPort,
    LogRepositoryPort,
    ScreenshotStorePort,
    TaskRepositoryPort,
    WorkflowRepositoryPort,
)


class WorkflowAlreadyRunningError(RuntimeError):
    """Raised when ``start_workflow`` is called on a busy orchestrator."""


class WorkflowStateError(RuntimeError):
    """Raised when a workflow cannot be started from its current status."""


@dataclass(frozen=True)
class WorkflowContext:
    """Collaborators handed to the orchestrator for one workflow run."""

    browser: BrowserPort
    task_repo: TaskRepositoryPort
    log_repo: LogRepositoryPort
    profile: CandidateProfile
    decision_service: DecisionServicePort | None = None
    llm: LLMClientPort | None = None
    screenshot_store: ScreenshotStorePort | None = None


AgentFactory = Callable[[Workflow, WorkflowContext], Mapping[TaskType, AgentPort]]

ORCHESTRATOR_LOG_NAME = "orchestrator"


class Orchestrator:
    """
    Drives one workflow: pulls tasks, dispatches them, chains the pipeline.

    The loop is serial and cooperative. Only this class mutates workflow
    and task status; agents just return results.
    """

    def __init__(
        self,
        *,
        workflow_repo: WorkflowRepositoryPort,
        agent_factory: AgentFactory,
        clock: ClockPort,
        id_generator: IdGeneratorPort,
        logger: LoggerPort,
        inter_task_delay: float = 1.0,
    ) -> None:
        self._workflow_repo = workflow_repo
        self._agent_factory = agent_factory
        self._clock = clock
        self._id_generator = id_generator
        self._logger = logger
        self._inter_task_delay = inter_task_delay
        self._is_running = False
        self._stop_requested = False
        self._workflow: Workflow | None = None
        self._context: WorkflowContext | None = None

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def workflow(self) -> Workflow | None:
        return self._workflow

    async def start_workflow(self, workflow: Workflow, context: WorkflowContext) -> Workflow:
        if self._is_running:
            raise WorkflowAlreadyRunningError("Workflow is already running")
        if workflow.status.is_terminal:
            raise WorkflowStateError(
                f"Workflow {workflow.id} is already {workflow.status.value}",
            )

        self._is_running = True
        self._stop_requested = False
        self._workflow = workflow
        self._context = context

        try:
            agents = self._agent_factory(workflow, context)
            await context.browser.launch()
            self._set_status(WorkflowStatus.PROCESSING)
            self._log("Workflow started")

            while not self._stop_requested and context.task_repo.has_pending(workflow.id):
                await self._process_next_task(agents)
                await asyncio.sleep(self._inter_task_delay)

            if self._stop_requested:
                self._set_status(WorkflowStatus.CANCELLED)
            else:
                self._set_status(WorkflowStatus.COMPLETED)
                self._log("Workflow completed successfully")
        except Exception as exc:
            self._logger.error(
                "workflow_failed",
                workflow_id=workflow.id,
                error=str(exc),
            )
            self._set_status(WorkflowStatus.FAILED)
            self._log(f"Workflow failed: {exc}", LogLevel.ERROR)
        finally:
            await self._release_browser(context)
            self._is_running = False

        return self._workflow

    async def _release_browser(self, context: WorkflowContext) -> None:
        """Close the shared browser, including after a partial or failed launch."""
        try:
            await context.browser.close()
        except Exception as exc:
            self._logger.warning(
                "browser_close_failed",
                workflow_id=self._require_workflow().id,
                error=str(exc),
            )

    async def stop_workflow(self) -> None:
        """Request cancellation; the current task finishes first."""
        if not self._is_running:
            return
        self._stop_requested = True
        self._set_status(WorkflowStatus.CANCELLED)
        self._log("Workflow stopped by user")

    # -- dispatch ------------------------------------------------------------

    async def _process_next_task(self, agents: Mapping[TaskType, AgentPort]) -> None:
        context = self._require_context()
        task = context.task_repo.next_pending(self._require_workflow().id)
        if task is None:
            return

        agent = agents.get(task.type)
        if agent is None:
            self._log(f"No agent found for task type: {task.type.value}", LogLevel.ERROR)
            self._save_task(
                task,
                status=TaskStatus.FAILED,
                result=AgentResult.failure(
                    "No agent registered",
                    error=f"Unsupported task type: {task.type.value}",
                ),
            )
            return

        self._log(f"Processing task {task.id} with agent {agent.name}")
        task = self._save_task(task, status=TaskStatus.ASSIGNED, assigned_agent=agent.name)
        task = self._save_task(task, status=TaskStatus.IN_PROGRESS)

        try:
            result = await agent.execute(task)
        except Exception as exc:
            result = AgentResult.failure(
                "Task execution failed",
                error=str(exc),
                retryable=True,
            )

        self._handle_task_result(task, result)

    def _handle_task_result(self, task: Task, result: AgentResult) -> None:
        if result.success:
            self._save_task(task, status=TaskStatus.COMPLETED, result=result)
            self._create_follow_up_tasks(task, result)
            self._log(f"Task {task.id} completed successfully")
            return

        if result.retryable and task.can_retry:
            self._save_task(
                task,
                status=TaskStatus.PENDING,
                result=result,
                current_retry=task.current_retry + 1,
            )
            self._log(f"Retrying task {task.id}, attempt {task.current_retry + 1}")
            return

        self._save_task(task, status=TaskStatus.FAILED, result=result)
        detail = f" ({result.error})" if result.error else ""
        self._log(f"Task {task.id} failed: {result.message}{detail}", LogLevel.ERROR)

    def _create_follow_up_tasks(self, task: Task, result: AgentResult) -> None:
        data = result.data or {}

        if task.type is TaskType.SITE_DISCOVERY:
            if data.get("accessible") and data.get("hasApplicationForm"):
                self._create_task(
                    TaskType.FORM_SCORING,
                    task,
                    payload={
                        "siteResult": data,
                        "applicationFormUrl": data.get("applicationFormUrl"),
                    },
                )
            return

        if task.type is TaskType.FORM_SCORING:
            if data.get("canAutoFill"):
                self._create_task(
                    TaskType.FILL_SUBMIT,
                    task,
                    payload={
                        "formData": data,
                        "applicationFormUrl": data.get("applicationFormUrl"),
                    },
                )
            return

        if task.type is TaskType.FILL_SUBMIT:
            self._record_application(submitted=bool(data.get("submitted")))

    def _record_application(self, *, submitted: bool) -> None:
        workflow = self._require_workflow()
        if submitted:
            workflow = replace(workflow, successful_applications=workflow.successful_applications + 1)
        else:
            workflow = replace(workflow, failed_applications=workflow.failed_applications + 1)

        if workflow.processed_jobs < workflow.total_jobs:
            workflow = replace(workflow, processed_jobs=workflow.processed_jobs + 1)
        else:
            self._logger.warning(
                "processed_jobs_at_total",
                workflow_id=workflow.id,
                total_jobs=workflow.total_jobs,
            )
        self._persist_workflow(workflow)

    def _create_task(
        self,
        task_type: TaskType,
        previous: Task,
        *,
        payload: dict[str, Any],
    ) -> Task:
        now = self._clock.now()
        task = Task(
            id=f"{task_type.value}-{previous.job_id}-{self._id_generator.new_task_id()}",
            workflow_id=previous.workflow_id,
            type=task_type,
            job_id=previous.job_id,
            job_url=previous.job_url,
            payload=payload,
            priority=TASK_PRIORITIES[task_type],
            max_retries=previous.max_retries,
            created_at=now,
            updated_at=now,
        )
        self._require_context().task_repo.add(task)
        self._log(f"Created {task_type.value} task {task.id} for job {task.job_id}")
        return task

    # -- state writes ----------------------------------------------------------

    def _save_task(self, task: Task, **changes: Any) -> Task:
        updated = replace(task, updated_at=self._clock.now(), **changes)
        self._require_context().task_repo.update(updated)
        return updated

    def _set_status(self, status: WorkflowStatus) -> None:
        workflow = self._require_workflow()
        if workflow.status is status:
            return
        if not workflow.can_transition_to(status):
            self._logger.warning(
                "workflow_transition_rejected",
                workflow_id=workflow.id,
                current=workflow.status.value,
                requested=status.value,
            )
            return
        self._persist_workflow(replace(workflow, status=status))

    def _persist_workflow(self, workflow: Workflow) -> None:
        workflow = replace(workflow, updated_at=self._clock.now())
        self._workflow = workflow
        self._workflow_repo.update(workflow)

    def _log(self, message: str, level: LogLevel = LogLevel.INFO) -> None:
        workflow = self._require_workflow()
        self._require_context().log_repo.append(
            LogEntry(
                workflow_id=workflow.id,
                agent=ORCHESTRATOR_LOG_NAME,
                message=message,
                level=level,
                timestamp=self._clock.now(),
            )
        )
        emit = getattr(self._logger, level.value)
        emit(message, workflow_id=workflow.id, agent=ORCHESTRATOR_LOG_NAME)

    def _require_workflow(self) -> Workflow:
        if self._workflow is None:
            raise RuntimeError("No workflow attached. Call start_workflow() first.")
        return self._workflow

    def _require_context(self) -> WorkflowContext:
        if self._context is None:
            raise RuntimeError("No workflow context attached. Call start_workflow() first.")
        return self._context
