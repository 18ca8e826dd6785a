"""
Domain layer package.

This package contains the workflow/task state machine, the agent result
contract and the ports the orchestrator depends on. Nothing here knows
about Playwright, SQLite or any particular LLM vendor.
"""

from .models import (  # noqa: F401
    AgentResult,
    CandidateProfile,
    FieldType,
    LogEntry,
    LogLevel,
    Task,
    TaskStatus,
    TaskType,
    Workflow,
    WorkflowStatus,
)
from .ports import (  # noqa: F401
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

__all__ = [
    # Models
    "Workflow",
    "WorkflowStatus",
    "Task",
    "TaskType",
    "TaskStatus",
    "AgentResult",
    "LogEntry",
    "LogLevel",
    "CandidateProfile",
    "FieldType",
    # Ports
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
