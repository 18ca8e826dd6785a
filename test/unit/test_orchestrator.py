from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Sequence

import pytest

from app import WorkflowFacade
from domain.models import (
    AgentResult,
    CandidateProfile,
    Task,
    TaskStatus,
    TaskType,
    Workflow,
    WorkflowStatus,
)
from domain.services import (
    Orchestrator,
    WorkflowAlreadyRunningError,
    WorkflowContext,
    WorkflowStateError,
)
from test.mocks import (
    FakeBrowser,
    FixedClock,
    InMemoryLogger,
    InMemoryLogRepository,
    InMemoryTaskRepository,
    InMemoryWorkflowRepository,
    SequentialIdGenerator,
)

PROFILE = CandidateProfile(first_name="Ada", last_name="Lovelace", email="ada@example.com")

SITE_WITH_FORM = AgentResult.ok(
    "Website check completed",
    {"accessible": True, "hasApplicationForm": True, "applicationFormUrl": "https://jobs.example.com/apply"},
)
SITE_WITHOUT_FORM = AgentResult.ok(
    "Website check completed",
    {"accessible": True, "hasApplicationForm": False, "applicationFormUrl": "https://jobs.example.com/1"},
)
FILLABLE = AgentResult.ok(
    "Form analysis completed",
    {"canAutoFill": True, "applicationFormUrl": "https://jobs.example.com/apply", "autoFillStrategy": None},
)
SUBMITTED = AgentResult.ok("Application filling completed", {"filled": True, "submitted": True})
NOT_SUBMITTED = AgentResult.ok("Application filled but not submitted", {"filled": True, "submitted": False})


class ScriptedAgent:
    """Agent double answering with scripted results (the last one repeats)."""

    def __init__(self, name: str, results: Sequence[AgentResult | Exception]) -> None:
        self.name = name
        self._results = list(results)
        self.calls: list[Task] = []
        self.on_execute: Any = None

    async def execute(self, task: Task) -> AgentResult:
        self.calls.append(task)
        if self.on_execute is not None:
            await self.on_execute(task)
        outcome = self._results[min(len(self.calls) - 1, len(self._results) - 1)]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@dataclass
class Harness:
    orchestrator: Orchestrator
    workflow: Workflow
    context: WorkflowContext
    workflows: InMemoryWorkflowRepository
    tasks: InMemoryTaskRepository
    logs: InMemoryLogRepository
    logger: InMemoryLogger
    browser: FakeBrowser
    agents: dict[TaskType, ScriptedAgent]
    calls: list[tuple[str, str]]

    def run(self) -> Workflow:
        return asyncio.run(self.orchestrator.start_workflow(self.workflow, self.context))


def _harness(
    *,
    discovery: Sequence[AgentResult | Exception] = (SITE_WITH_FORM,),
    scoring: Sequence[AgentResult | Exception] = (FILLABLE,),
    fill: Sequence[AgentResult | Exception] = (SUBMITTED,),
    job_urls: Sequence[str] = ("https://jobs.example.com/1",),
    max_retries: int = 3,
    register: Sequence[TaskType] = tuple(TaskType),
) -> Harness:
    clock = FixedClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
    ids = SequentialIdGenerator()
    workflows = InMemoryWorkflowRepository()
    tasks = InMemoryTaskRepository()
    logs = InMemoryLogRepository()
    logger = InMemoryLogger()
    browser = FakeBrowser()

    facade = WorkflowFacade(
        workflow_repo=workflows,
        task_repo=tasks,
        log_repo=logs,
        clock=clock,
        id_generator=ids,
        max_retries=max_retries,
    )
    workflow = facade.create_workflow(user_id="u1", search_query="python", job_urls=list(job_urls))

    calls: list[tuple[str, str]] = []
    agents = {
        TaskType.SITE_DISCOVERY: ScriptedAgent("site_discovery", discovery),
        TaskType.FORM_SCORING: ScriptedAgent("form_scoring", scoring),
        TaskType.FILL_SUBMIT: ScriptedAgent("fill_submit", fill),
    }
    for agent in agents.values():
        original = agent.execute

        async def tracked(task: Task, _original: Any = original) -> AgentResult:
            calls.append((task.type.value, task.job_id))
            return await _original(task)

        agent.execute = tracked  # type: ignore[method-assign]

    orchestrator = Orchestrator(
        workflow_repo=workflows,
        agent_factory=lambda wf, ctx: {t: agents[t] for t in register},
        clock=clock,
        id_generator=ids,
        logger=logger,
        inter_task_delay=0,
    )
    context = WorkflowContext(browser=browser, task_repo=tasks, log_repo=logs, profile=PROFILE)
    return Harness(orchestrator, workflow, context, workflows, tasks, logs, logger, browser, agents, calls)


def test_full_pipeline_counts_one_successful_application() -> None:
    h = _harness()

    final = h.run()

    assert final.status is WorkflowStatus.COMPLETED
    assert final.processed_jobs == 1
    assert final.successful_applications == 1
    assert final.failed_applications == 0
    assert h.workflows.get(final.id) == final
    assert h.calls == [("site_discovery", "job-0"), ("form_scoring", "job-0"), ("fill_submit", "job-0")]
    assert h.browser.launch_count == 1
    assert h.browser.close_count == 1


def test_follow_up_payloads_carry_previous_stage_output() -> None:
    h = _harness()

    h.run()

    tasks = {t.type: t for t in h.tasks.list_for_workflow(h.workflow.id)}
    scoring = tasks[TaskType.FORM_SCORING]
    fill = tasks[TaskType.FILL_SUBMIT]
    assert scoring.payload["siteResult"] == SITE_WITH_FORM.data
    assert scoring.payload["applicationFormUrl"] == "https://jobs.example.com/apply"
    assert scoring.priority == 2
    assert fill.payload["formData"] == FILLABLE.data
    assert fill.priority == 3
    assert fill.id.startswith("fill_submit-job-0-")
    assert all(t.status is TaskStatus.COMPLETED for t in tasks.values())


def test_one_job_is_finished_before_the_next_discovery_starts() -> None:
    h = _harness(job_urls=("https://jobs.example.com/1", "https://jobs.example.com/2"))

    final = h.run()

    assert [job for _, job in h.calls] == ["job-0"] * 3 + ["job-1"] * 3
    assert final.processed_jobs == 2
    assert final.successful_applications == 2


def test_page_without_form_ends_the_pipeline_for_that_job() -> None:
    h = _harness(discovery=(SITE_WITHOUT_FORM,))

    final = h.run()

    assert final.status is WorkflowStatus.COMPLETED
    assert final.processed_jobs == 0
    assert [t for t, _ in h.calls] == ["site_discovery"]


def test_unfillable_form_creates_no_fill_task() -> None:
    h = _harness(scoring=(AgentResult.ok("Form analysis completed", {"canAutoFill": False}),))

    h.run()

    types = [t.type for t in h.tasks.list_for_workflow(h.workflow.id)]
    assert TaskType.FILL_SUBMIT not in types


def test_unsubmitted_application_counts_as_failed() -> None:
    h = _harness(fill=(NOT_SUBMITTED,))

    final = h.run()

    assert final.processed_jobs == 1
    assert final.successful_applications == 0
    assert final.failed_applications == 1


def test_retryable_failure_is_retried_up_to_max_retries() -> None:
    failure = AgentResult.failure("Website check failed", "net::ERR", retryable=True)
    h = _harness(discovery=(failure,), max_retries=2)

    final = h.run()

    assert len(h.agents[TaskType.SITE_DISCOVERY].calls) == 3
    (task,) = h.tasks.list_for_workflow(h.workflow.id)
    assert task.status is TaskStatus.FAILED
    assert task.current_retry == 2
    assert task.result == failure
    assert final.status is WorkflowStatus.COMPLETED


def test_retry_then_success_continues_the_pipeline() -> None:
    failure = AgentResult.failure("Website check failed", "timeout", retryable=True)
    h = _harness(discovery=(failure, SITE_WITH_FORM))

    final = h.run()

    assert final.successful_applications == 1
    discovery = h.tasks.list_for_workflow(h.workflow.id)[0]
    assert discovery.current_retry == 1
    assert discovery.status is TaskStatus.COMPLETED


def test_non_retryable_failure_is_not_retried() -> None:
    h = _harness(fill=(AgentResult.failure("Application filling failed", "No fill strategy available"),))

    final = h.run()

    assert len(h.agents[TaskType.FILL_SUBMIT].calls) == 1
    fill = h.tasks.list_for_workflow(h.workflow.id)[-1]
    assert fill.status is TaskStatus.FAILED
    assert final.processed_jobs == 0


def test_agent_exception_is_treated_as_retryable_failure() -> None:
    h = _harness(discovery=(RuntimeError("boom"),), max_retries=1)

    final = h.run()

    (task,) = h.tasks.list_for_workflow(h.workflow.id)
    assert len(h.agents[TaskType.SITE_DISCOVERY].calls) == 2
    assert task.status is TaskStatus.FAILED
    assert task.result is not None
    assert task.result.message == "Task execution failed"
    assert task.result.error == "boom"
    assert final.status is WorkflowStatus.COMPLETED


def test_task_without_registered_agent_fails_without_retry() -> None:
    h = _harness(register=(TaskType.FORM_SCORING, TaskType.FILL_SUBMIT))

    final = h.run()

    (task,) = h.tasks.list_for_workflow(h.workflow.id)
    assert task.status is TaskStatus.FAILED
    assert task.result is not None
    assert task.result.error == "Unsupported task type: site_discovery"
    assert "No agent found for task type: site_discovery" in h.logs.messages()
    assert final.status is WorkflowStatus.COMPLETED


def test_processed_jobs_never_exceeds_total_jobs() -> None:
    h = _harness()
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    h.tasks.add(
        Task(
            id="fill_submit-job-0-extra",
            workflow_id=h.workflow.id,
            type=TaskType.FILL_SUBMIT,
            job_id="job-0",
            job_url="https://jobs.example.com/1",
            payload={"formData": {}},
            priority=3,
            created_at=now,
        )
    )

    final = h.run()

    assert final.successful_applications == 2
    assert final.processed_jobs == 1
    assert "processed_jobs_at_total" in h.logger.messages("warning")


def test_stop_finishes_current_task_and_cancels_the_rest() -> None:
    h = _harness(job_urls=("https://jobs.example.com/1", "https://jobs.example.com/2"))

    async def stop(task: Task) -> None:
        await h.orchestrator.stop_workflow()

    h.agents[TaskType.SITE_DISCOVERY].on_execute = stop

    final = h.run()

    assert final.status is WorkflowStatus.CANCELLED
    assert h.calls == [("site_discovery", "job-0")]
    assert h.tasks.has_pending(h.workflow.id)
    assert "Workflow stopped by user" in h.logs.messages()
    assert not h.orchestrator.is_running


def test_second_start_while_running_is_rejected() -> None:
    h = _harness()
    errors: list[Exception] = []

    async def start_again(task: Task) -> None:
        try:
            await h.orchestrator.start_workflow(h.workflow, h.context)
        except WorkflowAlreadyRunningError as exc:
            errors.append(exc)

    h.agents[TaskType.SITE_DISCOVERY].on_execute = start_again

    final = h.run()

    assert len(errors) == 1
    assert final.status is WorkflowStatus.COMPLETED


def test_terminal_workflow_cannot_be_started() -> None:
    h = _harness()
    done = replace(h.workflow, status=WorkflowStatus.COMPLETED)

    with pytest.raises(WorkflowStateError):
        asyncio.run(h.orchestrator.start_workflow(done, h.context))

    assert h.browser.launch_count == 0


def test_browser_launch_failure_marks_workflow_failed() -> None:
    h = _harness()

    async def broken_launch() -> None:
        raise RuntimeError("chromium missing")

    h.browser.launch = broken_launch  # type: ignore[method-assign]

    final = h.run()

    assert final.status is WorkflowStatus.FAILED
    assert h.browser.close_count == 1
    assert "workflow_failed" in h.logger.messages("error")


def test_browser_close_error_is_logged_not_raised() -> None:
    h = _harness()

    async def broken_close() -> None:
        raise RuntimeError("driver already gone")

    h.browser.close = broken_close  # type: ignore[method-assign]

    final = h.run()

    assert final.status is WorkflowStatus.COMPLETED
    assert "browser_close_failed" in h.logger.messages("warning")
