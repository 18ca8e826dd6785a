"""Pipeline agents and the factory that wires them for one workflow."""

from __future__ import annotations

from typing import Mapping

from domain.models import TaskType, Workflow
from domain.ports import AgentPort, ClockPort, LoggerPort
from domain.services import WorkflowContext
from infra.browser.dialog_sweeper import DialogSweeper

from .base_agent import BaseAgent
from .fill_submit import FillSubmitAgent
from .form_scoring import FormScoringAgent
from .site_discovery import SiteDiscoveryAgent


def build_agents(
    workflow: Workflow,
    context: WorkflowContext,
    *,
    logger: LoggerPort,
    clock: ClockPort,
) -> Mapping[TaskType, AgentPort]:
    """Create one agent per task type, all sharing the workflow's browser."""
    common = dict(
        browser=context.browser,
        log_repo=context.log_repo,
        logger=logger,
        clock=clock,
        workflow_id=workflow.id,
        screenshot_store=context.screenshot_store,
        sweeper=DialogSweeper(logger=logger),
    )
    return {
        TaskType.SITE_DISCOVERY: SiteDiscoveryAgent(
            decision_service=context.decision_service, **common,
        ),
        TaskType.FORM_SCORING: FormScoringAgent(
            profile=context.profile, decision_service=context.decision_service, **common,
        ),
        TaskType.FILL_SUBMIT: FillSubmitAgent(
            profile=context.profile, llm=context.llm, **common,
        ),
    }


__all__ = [
    "BaseAgent",
    "SiteDiscoveryAgent",
    "FormScoringAgent",
    "FillSubmitAgent",
    "build_agents",
]
