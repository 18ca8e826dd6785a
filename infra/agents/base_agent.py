from __future__ import annotations

import base64
from typing import Any

from playwright.async_api import Error as PlaywrightError

from domain.models import AgentResult, LogEntry, LogLevel, Task, TaskType
from domain.ports import BrowserPort, ClockPort, LoggerPort, LogRepositoryPort, ScreenshotStorePort
from infra.browser.dialog_sweeper import DialogSweeper


class BaseAgent:
    """
    Common lifecycle for pipeline agents.

    ``execute`` opens a fresh page, hands it to ``_run`` and closes it on
    every path. Anything ``_run`` raises becomes a retryable failure so
    the orchestrator never sees an exception from an agent.
    """

    agent_type: TaskType
    failure_message = "Task failed"

    def __init__(
        self,
        *,
        browser: BrowserPort,
        log_repo: LogRepositoryPort,
        logger: LoggerPort,
        clock: ClockPort,
        workflow_id: str,
        screenshot_store: ScreenshotStorePort | None = None,
        sweeper: DialogSweeper | None = None,
    ) -> None:
        self._browser = browser
        self._log_repo = log_repo
        self._logger = logger
        self._clock = clock
        self._workflow_id = workflow_id
        self._screenshot_store = screenshot_store
        self._sweeper = sweeper or DialogSweeper(logger=logger)

    @property
    def name(self) -> str:
        return self.agent_type.value

    async def execute(self, task: Task) -> AgentResult:
        self._log(f"Starting {self.name} for: {task.job_url}")
        try:
            page = await self._browser.new_page()
        except Exception as exc:
            self._log(f"Failed to create browser page: {exc}", LogLevel.ERROR)
            return AgentResult.failure("Failed to create browser page", str(exc), retryable=True)

        try:
            result = await self._run(page, task)
        except Exception as exc:
            self._log(f"{self.failure_message} for {task.job_url}: {exc}", LogLevel.ERROR)
            return AgentResult.failure(self.failure_message, str(exc), retryable=True)
        finally:
            await self._close_page(page)

        self._log(f"{self.name} finished for {task.job_url}: {result.message}")
        return result

    async def _run(self, page: Any, task: Task) -> AgentResult:
        raise NotImplementedError

    # -- helpers for subclasses ------------------------------------------------

    def _log(self, message: str, level: LogLevel = LogLevel.INFO) -> None:
        self._log_repo.append(
            LogEntry(
                workflow_id=self._workflow_id,
                agent=self.name,
                message=message,
                level=level,
                timestamp=self._clock.now(),
            )
        )
        emit = getattr(self._logger, level.value)
        emit(message, workflow_id=self._workflow_id, agent=self.name)

    async def _take_screenshot(self, page: Any, name: str) -> str | None:
        """Capture a full-page audit screenshot; ``None`` when unavailable."""
        if self._screenshot_store is None:
            return None
        try:
            image = await page.screenshot(full_page=True)
        except PlaywrightError as exc:
            self._log(f"Error taking screenshot: {exc}", LogLevel.ERROR)
            return None
        return self._screenshot_store.save_screenshot(self._workflow_id, name, image)

    async def _collect(self, page: Any, name: str, screenshots: list[str]) -> None:
        path = await self._take_screenshot(page, name)
        if path:
            screenshots.append(path)

    @staticmethod
    async def _screenshot_base64(page: Any, *, full_page: bool) -> str:
        image = await page.screenshot(full_page=full_page)
        return base64.b64encode(image).decode("ascii")

    async def _sweep_dialogs(self, page: Any, settle_ms: int = 2000) -> None:
        result = await self._sweeper.sweep(page)
        if result.dialogs_handled:
            self._log(
                f"Closed {result.dialogs_handled} dialogs: {', '.join(result.dialogs_found)}"
            )
            await page.wait_for_timeout(settle_ms)

    async def _click_flagged_dialog(self, page: Any, selector: str, reason: str) -> bool:
        """Click a dialog control pointed out by the decision service."""
        self._log(f"Decision service flagged a dialog: {reason}")
        try:
            element = page.locator(selector).first
            if not await element.is_visible(timeout=2000):
                return False
            await element.click(timeout=5000)
        except PlaywrightError as exc:
            self._log(f"Failed to close dialog: {exc}", LogLevel.WARNING)
            return False
        await page.wait_for_timeout(3000)
        return True

    async def _close_page(self, page: Any) -> None:
        try:
            await page.close()
        except PlaywrightError as exc:
            self._log(f"Error closing page: {exc}", LogLevel.WARNING)
