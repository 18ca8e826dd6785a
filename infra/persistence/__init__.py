"""SQLite-backed persistence adapters for domain repository ports."""

from .sqlite_log_repository import SQLiteLogRepository
from .sqlite_task_repository import SQLiteTaskRepository
from .sqlite_workflow_repository import SQLiteWorkflowRepository

__all__ = [
    "SQLiteWorkflowRepository",
    "SQLiteTaskRepository",
    "SQLiteLogRepository",
]
