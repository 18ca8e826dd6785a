"""
Domain services.

The orchestrator owns the workflow lifecycle while depending only on
domain models and ports, so agents and adapters can live in infra.
"""

from .orchestrator import (  # noqa: F401
    ORCHESTRATOR_LOG_NAME,
    AgentFactory,
    Orchestrator,
    WorkflowAlreadyRunningError,
    WorkflowContext,
    WorkflowStateError,
)

__all__ = [
    "Orchestrator",
    "WorkflowContext",
    "AgentFactory",
    "WorkflowAlreadyRunningError",
    "WorkflowStateError",
    "ORCHESTRATOR_LOG_NAME",
]
