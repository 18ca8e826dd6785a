"""
Reusable fakes and in-memory implementations for tests.
"""

from .fake_browser import (
    FakeBrowser,
    FakeElement,
    FakeLocator,
    FakePage,
    application_form,
    input_field,
)
from .fake_repositories import (
    InMemoryLogRepository,
    InMemoryTaskRepository,
    InMemoryWorkflowRepository,
)
from .fake_runtime import (
    FixedClock,
    InMemoryLogger,
    InMemoryScreenshotStore,
    SequentialIdGenerator,
)
from .scripted_llm_client import ScriptedDecisionService, ScriptedLLMClient

__all__ = [
    "FakeBrowser",
    "FakePage",
    "FakeLocator",
    "FakeElement",
    "application_form",
    "input_field",
    "InMemoryWorkflowRepository",
    "InMemoryTaskRepository",
    "InMemoryLogRepository",
    "FixedClock",
    "SequentialIdGenerator",
    "InMemoryLogger",
    "InMemoryScreenshotStore",
    "ScriptedLLMClient",
    "ScriptedDecisionService",
]
