"""Shared fixtures and context for the pipeline BDD scenarios."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

import pytest
from playwright.async_api import Error as PlaywrightError

from app import WorkflowFacade
from domain.models import CandidateProfile, Task, TaskType, Workflow
from domain.services import Orchestrator, WorkflowContext
from infra.agents import build_agents
from infra.persistence import SQLiteLogRepository, SQLiteTaskRepository, SQLiteWorkflowRepository
from test.mocks import (
    FakeBrowser,
    FakeElement,
    FakePage,
    FixedClock,
    InMemoryLogger,
    SequentialIdGenerator,
    application_form,
    input_field,
)

PROFILE = CandidateProfile(
    first_name="Ada",
    last_name="Lovelace",
    email="ada@example.com",
    phone="+44 20 7946 0000",
    cv_file_path="/home/ada/resume.pdf",
)

NOW = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


@dataclass
class CareersForm:
    """Controls of one rendered application form, kept for assertions."""

    first_name: FakeElement
    last_name: FakeElement
    email: FakeElement
    phone: FakeElement
    resume: FakeElement


def build_form_page(page: FakePage, *, with_submit: bool = True) -> CareersForm:
    form = CareersForm(
        first_name=input_field(name="first_name", id="first_name", required=True),
        last_name=input_field(name="last_name", id="last_name"),
        email=input_field(name="email", id="email", type="email", required=True),
        phone=input_field(name="phone", id="phone", type="tel"),
        resume=input_field(name="resume", id="resume", type="file"),
    )
    controls = (form.first_name, form.last_name, form.email, form.phone, form.resume)
    page.add("form", application_form(*controls))
    for control in controls:
        page.add(f"#{control.attrs['id']}", control)
    if with_submit:
        def confirm() -> None:
            page.body_text = "Thank you for applying! We have received your application."

        page.add('button[type="submit"]', FakeElement(tag="button", text="Submit", on_click=confirm))
    return form


@dataclass
class PipelineContext:
    workflows: SQLiteWorkflowRepository
    tasks: SQLiteTaskRepository
    logs: SQLiteLogRepository
    job_urls: list[str] = field(default_factory=list)
    sites: dict[str, Callable[[FakePage], None]] = field(default_factory=dict)
    forms: dict[str, CareersForm] = field(default_factory=dict)
    workflow: Workflow | None = None
    browser: FakeBrowser | None = None

    def serve_form(self, url: str, *, with_submit: bool = True) -> None:
        def build(page: FakePage) -> None:
            self.forms[url] = build_form_page(page, with_submit=with_submit)

        self.sites[url] = build

    def serve_unreachable(self, url: str) -> None:
        def build(page: FakePage) -> None:
            raise PlaywrightError(f"net::ERR_NAME_NOT_RESOLVED at {url}")

        self.sites[url] = build

    def tasks_for_job(self, job_id: str) -> list[Task]:
        assert self.workflow is not None
        return [t for t in self.tasks.list_for_workflow(self.workflow.id) if t.job_id == job_id]

    def task_of_type(self, task_type: TaskType) -> Task:
        assert self.workflow is not None
        matches = [t for t in self.tasks.list_for_workflow(self.workflow.id) if t.type is task_type]
        assert matches, f"No {task_type.value} task was created"
        return matches[0]


@pytest.fixture()
def ctx(pipeline_db: str) -> PipelineContext:
    context = PipelineContext(
        workflows=SQLiteWorkflowRepository(pipeline_db),
        tasks=SQLiteTaskRepository(pipeline_db),
        logs=SQLiteLogRepository(pipeline_db),
    )
    yield context
    context.workflows.close()
    context.tasks.close()
    context.logs.close()


def run_pipeline(ctx: PipelineContext) -> Workflow:
    """Create a workflow for ``ctx.job_urls`` and drive it to the end."""
    clock = FixedClock(NOW)
    ids = SequentialIdGenerator()
    logger = InMemoryLogger()
    facade = WorkflowFacade(
        workflow_repo=ctx.workflows,
        task_repo=ctx.tasks,
        log_repo=ctx.logs,
        clock=clock,
        id_generator=ids,
    )
    workflow = facade.create_workflow(user_id="bdd", search_query="engineer", job_urls=ctx.job_urls)
    ctx.browser = FakeBrowser(sites=ctx.sites)
    orchestrator = Orchestrator(
        workflow_repo=ctx.workflows,
        agent_factory=lambda wf, wc: build_agents(wf, wc, logger=logger, clock=clock),
        clock=clock,
        id_generator=ids,
        logger=logger,
        inter_task_delay=0,
    )
    context = WorkflowContext(
        browser=ctx.browser,
        task_repo=ctx.tasks,
        log_repo=ctx.logs,
        profile=PROFILE,
    )
    ctx.workflow = asyncio.run(orchestrator.start_workflow(workflow, context))
    return ctx.workflow
