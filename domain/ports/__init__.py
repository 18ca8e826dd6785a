from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import Any, Protocol, Sequence, runtime_checkable

from domain.models import (
    AgentResult,
    CandidateProfile,
    FormAnalysis,
    LogEntry,
    NavigationSuggestion,
    Task,
    Workflow,
)


@runtime_checkable
class WorkflowRepositoryPort(Protocol):
    """Persistence for workflow records and their counters."""

    @abstractmethod
    def add(self, workflow: Workflow) -> None:
        ...

    @abstractmethod
    def update(self, workflow: Workflow) -> None:
        ...

    @abstractmethod
    def get(self, workflow_id: str) -> Workflow | None:
        ...


@runtime_checkable
class TaskRepositoryPort(Protocol):
    """
    Task queue storage.

    ``next_pending`` must order by priority descending, then creation
    time ascending, with insertion order breaking ties.
    """

    @abstractmethod
    def add(self, task: Task) -> None:
        ...

    @abstractmethod
    def update(self, task: Task) -> None:
        ...

    @abstractmethod
    def get(self, task_id: str) -> Task | None:
        ...

    @abstractmethod
    def next_pending(self, workflow_id: str) -> Task | None:
        ...

    @abstractmethod
    def has_pending(self, workflow_id: str) -> bool:
        ...

    @abstractmethod
    def list_for_workflow(self, workflow_id: str) -> Sequence[Task]:
        ...


@runtime_checkable
class LogRepositoryPort(Protocol):
    """Append-only store for the per-workflow diagnostic trail."""

    @abstractmethod
    def append(self, entry: LogEntry) -> None:
        ...

    @abstractmethod
    def list_for_workflow(
        self,
        workflow_id: str,
        *,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> Sequence[LogEntry]:
        ...


@runtime_checkable
class AgentPort(Protocol):
    """A pipeline stage. Must never raise; failures come back as results."""

    name: str

    async def execute(self, task: Task) -> AgentResult:
        ...


@runtime_checkable
class BrowserPort(Protocol):
    """
    One browser process shared by every task of a workflow.

    Pages returned by ``new_page`` follow the Playwright async ``Page`` API.
    """

    async def launch(self) -> None:
        ...

    async def new_page(self) -> Any:
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class DecisionServicePort(Protocol):
    """Vision-capable reasoning service that reads screenshots and markup."""

    async def analyze_for_apply_button(
        self,
        screenshot_base64: str,
        current_url: str,
        page_html: str | None = None,
    ) -> NavigationSuggestion:
        ...

    async def analyze_form_for_filling(
        self,
        screenshot_base64: str,
        page_html: str,
        profile: CandidateProfile,
        current_url: str,
    ) -> FormAnalysis:
        ...


@runtime_checkable
class LLMClientPort(Protocol):
    """Thin abstraction over an LLM text completion API."""

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        ...


@runtime_checkable
class ScreenshotStorePort(Protocol):
    """Where audit screenshots end up. Returns the stored location."""

    def save_screenshot(self, workflow_id: str, name: str, image_bytes: bytes) -> str:
        ...


@runtime_checkable
class ClockPort(Protocol):
    """Time source for deterministic and easily testable code."""

    def now(self) -> datetime:
        ...


@runtime_checkable
class IdGeneratorPort(Protocol):
    """Generation of identifiers for workflows, tasks and jobs."""

    def new_workflow_id(self) -> str:
        ...

    def new_task_id(self) -> str:
        ...


@runtime_checkable
class LoggerPort(Protocol):
    """Structured, testable logging abstraction."""

    def debug(self, message: str, **fields: Any) -> None:
        ...

    def info(self, message: str, **fields: Any) -> None:
        ...

    def warning(self, message: str, **fields: Any) -> None:
        ...

    def error(self, message: str, **fields: Any) -> None:
        ...


__all__ = [
    "WorkflowRepositoryPort",
    "TaskRepositoryPort",
    "LogRepositoryPort",
    "AgentPort",
    "BrowserPort",
    "DecisionServicePort",
    "LLMClientPort",
    "ScreenshotStorePort",
    "ClockPort",
    "IdGeneratorPort",
    "LoggerPort",
]
