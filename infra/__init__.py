"""Infrastructure adapters: concrete implementations of domain ports."""

from .agents import FillSubmitAgent, FormScoringAgent, SiteDiscoveryAgent, build_agents
from .browser import DialogSweeper, PlaywrightBrowser
from .config import ConfigError, FileSystemConfigProvider
from .llm import OpenAIChatClient, VisionDecisionService
from .logs import FileSystemScreenshotStore
from .persistence import SQLiteLogRepository, SQLiteTaskRepository, SQLiteWorkflowRepository
from .runtime import StructuredLogger, SystemClock, UuidIdGenerator

__all__ = [
    "SiteDiscoveryAgent",
    "FormScoringAgent",
    "FillSubmitAgent",
    "build_agents",
    "PlaywrightBrowser",
    "DialogSweeper",
    "FileSystemConfigProvider",
    "ConfigError",
    "OpenAIChatClient",
    "VisionDecisionService",
    "FileSystemScreenshotStore",
    "SQLiteWorkflowRepository",
    "SQLiteTaskRepository",
    "SQLiteLogRepository",
    "SystemClock",
    "UuidIdGenerator",
    "StructuredLogger",
]
