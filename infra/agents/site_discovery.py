from __future__ import annotations

import re
from typing import Any, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from domain.models import (
    AgentResult,
    ApplyAction,
    FormElement,
    LogLevel,
    NavigationSuggestion,
    SiteCheckResult,
    Task,
    TaskType,
)
from domain.ports import DecisionServicePort

from .base_agent import BaseAgent

NAVIGATION_TIMEOUT_MS = 60_000
INITIAL_SETTLE_MS = 3000
MIN_APPLY_CONFIDENCE = 70
LABEL_MAX_CHARS = 100
LAST_RESORT_TEXT_MAX_CHARS = 50
LAST_RESORT_CANDIDATES_PER_TEXT = 5

_APPLICATION_MARKERS = ("resume", "experience", "cover", "phone")
_HAS_TEXT = re.compile(r'has-text\("([^"]+)"\)')

FALLBACK_APPLY_SELECTORS: Sequence[str] = (
    'button:has-text("Apply Now")',
    'a:has-text("Apply Now")',
    'button:has-text("Apply")',
    'a:has-text("Apply")',
    'button:has-text("Apply for this Job")',
    'a:has-text("Apply for this Job")',
    'button:has-text("Quick Apply")',
    'a:has-text("Quick Apply")',
    'button:has-text("Start Application")',
    'a:has-text("Start Application")',
    'button:has-text("APPLY NOW")',
    'a:has-text("APPLY NOW")',
    'button:has-text("apply now")',
    'a:has-text("apply now")',
    'div:has-text("Apply Now")',
    'span:has-text("Apply Now")',
    "#apply-button",
    "#apply-now",
    "#job-apply",
    "#apply-btn",
    "#apply_button",
    "#apply_now",
    '[data-testid*="apply"]',
    '[data-action="apply"]',
    '[data-apply="true"]',
    '[data-cy*="apply"]',
    'a[href*="apply"]',
    'a[href*="application"]',
    ".apply-btn",
    ".apply-button",
    ".job-apply-button",
    ".btn-apply",
    ".apply-now",
    ".apply-link",
)

LAST_RESORT_TEXTS: Sequence[str] = (
    "Apply Now",
    "Apply",
    "APPLY NOW",
    "APPLY",
    "apply now",
    "apply",
    "Apply for this Job",
    "Quick Apply",
    "Start Application",
)


class SiteDiscoveryAgent(BaseAgent):
    """Opens a job URL and locates the application form, clicking through to it if needed."""

    agent_type = TaskType.SITE_DISCOVERY
    failure_message = "Website check failed"

    def __init__(self, *, decision_service: DecisionServicePort | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._decision_service = decision_service

    async def _run(self, page: Any, task: Task) -> AgentResult:
        screenshots: list[str] = []

        try:
            await page.goto(task.job_url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
        except PlaywrightError as exc:
            self._log(f"Error accessing {task.job_url}: {exc}", LogLevel.ERROR)
            await self._collect(page, "error", screenshots)
            result = SiteCheckResult(
                accessible=False,
                error_message=str(exc),
                screenshots=tuple(screenshots),
            )
            return AgentResult.failure(
                self.failure_message,
                str(exc),
                retryable=True,
                data=result.to_dict(),
            )

        self._log(f"Successfully accessed: {task.job_url}")
        await self._collect(page, "initial-load", screenshots)
        await page.wait_for_timeout(INITIAL_SETTLE_MS)
        await self._sweep_dialogs(page)

        navigated = False
        elements = await self._find_application_form(page)
        if elements is None:
            self._log("No form found on current page, looking for an apply button")
            navigated = await self._navigate_to_application_form(page)
            if navigated:
                self._log(f"Navigated to: {page.url}")
                await self._collect(page, "after-navigation", screenshots)
                elements = await self._find_application_form(page)
            else:
                self._log("No apply button could be followed")

        has_form = elements is not None
        if has_form:
            self._log(f"Found job application form at: {page.url}")
            await self._collect(page, "application-form", screenshots)
        else:
            self._log(f"No job application form found on: {task.job_url}")

        result = SiteCheckResult(
            accessible=True,
            has_application_form=has_form,
            application_form_url=page.url,
            form_elements=tuple(elements or ()),
            screenshots=tuple(screenshots),
            navigated=navigated,
        )
        return AgentResult.ok("Website check completed", result.to_dict())

    # -- form detection ------------------------------------------------------------

    async def _find_application_form(self, page: Any) -> list[FormElement] | None:
        """Return the descriptors of the first form that looks like an application."""
        for form in await page.locator("form").all():
            try:
                markup = (await form.inner_html()).lower()
            except PlaywrightError:
                continue
            if "name" in markup and "email" in markup and any(m in markup for m in _APPLICATION_MARKERS):
                return await self._extract_form_elements(form)
        return None

    async def _extract_form_elements(self, form: Any) -> list[FormElement]:
        elements: list[FormElement] = []
        for field in await form.locator("input, textarea, select").all():
            try:
                elements.append(await self._describe_field(form, field))
            except PlaywrightError as exc:
                self._log(f"Error extracting form element: {exc}", LogLevel.WARNING)
        return elements

    async def _describe_field(self, form: Any, field: Any) -> FormElement:
        tag = str(await field.evaluate("el => el.tagName.toLowerCase()"))
        if tag in ("select", "textarea"):
            field_type = tag
        else:
            field_type = await field.get_attribute("type") or "text"
        field_id = await field.get_attribute("id") or ""

        label = ""
        if field_id:
            label_locator = form.locator(f'label[for="{field_id}"]')
            if await label_locator.count():
                label = await label_locator.first.text_content() or ""
        if not label:
            parent_text = await field.evaluate(
                "el => el.parentElement ? el.parentElement.textContent : ''"
            )
            label = str(parent_text or "").strip()[:LABEL_MAX_CHARS]

        options: list[str] = []
        if tag == "select":
            for option in await field.locator("option").all():
                text = (await option.text_content() or "").strip()
                value = await option.get_attribute("value") or ""
                if text or value:
                    options.append(text or value)

        return FormElement(
            type=field_type,
            name=await field.get_attribute("name") or "",
            id=field_id,
            label=label.strip(),
            placeholder=await field.get_attribute("placeholder") or "",
            required=await field.get_attribute("required") is not None,
            options=tuple(options),
        )

    # -- navigation ----------------------------------------------------------------

    async def _navigate_to_application_form(self, page: Any) -> bool:
        if self._decision_service is None:
            return await self._try_fallback_apply_buttons(page)

        await self._sweep_dialogs(page)
        suggestion = await self._ask_for_apply_button(page)

        if suggestion.has_dialog and suggestion.dialog_action.should_click and suggestion.dialog_action.selector:
            closed = await self._click_flagged_dialog(
                page, suggestion.dialog_action.selector, suggestion.dialog_action.reason,
            )
            if closed:
                suggestion = await self._ask_for_apply_button(page)

        return await self._follow_apply_action(page, suggestion.apply_action)

    async def _ask_for_apply_button(self, page: Any) -> NavigationSuggestion:
        screenshot = await self._screenshot_base64(page, full_page=False)
        html = await page.content()
        return await self._decision_service.analyze_for_apply_button(screenshot, page.url, html)

    async def _follow_apply_action(self, page: Any, action: ApplyAction) -> bool:
        if not action.should_click or not action.selector:
            self._log("Decision service found no apply button")
            return await self._try_fallback_apply_buttons(page)
        if action.confidence < MIN_APPLY_CONFIDENCE:
            self._log(f"Apply button confidence too low ({action.confidence:.0f}%)")
            return await self._try_fallback_apply_buttons(page)

        self._log(f"Apply button: {action.reason} (confidence: {action.confidence:.0f}%)")
        for selector in (action.selector, *_case_variants(action.selector), *action.alternative_selectors):
            if await self._click_and_wait(page, page.locator(selector).first, selector):
                return True

        self._log("Suggested selectors failed, trying fallback selectors")
        return await self._try_fallback_apply_buttons(page)

    async def _try_fallback_apply_buttons(self, page: Any) -> bool:
        for selector in FALLBACK_APPLY_SELECTORS:
            if await self._click_and_wait(page, page.locator(selector).first, selector):
                return True

        self._log('Last resort: scanning for short elements containing "apply"')
        for text in LAST_RESORT_TEXTS:
            try:
                candidates = await page.locator(f'*:has-text("{text}")').all()
            except PlaywrightError:
                continue
            for element in candidates[:LAST_RESORT_CANDIDATES_PER_TEXT]:
                try:
                    content = (await element.text_content() or "").strip()
                except PlaywrightError:
                    continue
                if len(content) >= LAST_RESORT_TEXT_MAX_CHARS or "apply" not in content.lower():
                    continue
                if await self._click_and_wait(page, element, f'"{content}"'):
                    return True

        return False

    async def _click_and_wait(self, page: Any, element: Any, description: str) -> bool:
        """Click a visible, enabled element and report whether the page moved on."""
        before_url = page.url
        try:
            if not await element.is_visible(timeout=1000) or not await element.is_enabled():
                return False
            before_content = await page.content()
            await element.click(timeout=5000)
        except PlaywrightError:
            return False

        try:
            await page.wait_for_url(lambda url: url != before_url, timeout=10_000)
        except PlaywrightTimeoutError:
            pass

        if page.url != before_url:
            self._log(f"Clicked {description}, navigated from {before_url} to {page.url}")
            return True
        if await page.content() != before_content:
            self._log(f"Clicked {description}, page content changed in place")
            return True
        self._log(f"Clicked {description} but nothing changed", LogLevel.DEBUG)
        return False


def _case_variants(selector: str) -> list[str]:
    if not _HAS_TEXT.search(selector):
        return []
    upper = _HAS_TEXT.sub(lambda m: f'has-text("{m.group(1).upper()}")', selector)
    lower = _HAS_TEXT.sub(lambda m: f'has-text("{m.group(1).lower()}")', selector)
    return [v for v in (upper, lower) if v != selector]
