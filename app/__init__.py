"""Application/UI layer package."""

from .facade import UnknownWorkflowError, WorkflowFacade, WorkflowProgress

__all__ = ["WorkflowFacade", "WorkflowProgress", "UnknownWorkflowError"]
