from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from domain.models import (
    AgentResult,
    CandidateProfile,
    FieldMapping,
    FieldType,
    FillOutcome,
    FillStep,
    FillStrategy,
    LogLevel,
    StepResult,
    Task,
    TaskType,
)
from domain.ports import LLMClientPort
from domain.prompts import build_improvised_fill_prompt
from infra.llm.vision_decision_service import extract_json_object

from .base_agent import BaseAgent

NAVIGATION_TIMEOUT_MS = 30_000
FIELD_VISIBLE_TIMEOUT_MS = 10_000
ACTION_TIMEOUT_MS = 5000
SELECT_ATTEMPT_TIMEOUT_MS = 3000
FIELD_DELAY_MS = 800
LEGACY_STEP_DELAY_MS = 500
CONFIRMATION_GRACE_MS = 3000

RESUME_PROFILE_FIELDS = frozenset({"cv_file_path", "resume"})
TRUTHY_VALUES = frozenset({"true", "1", "yes"})
FALSY_VALUES = frozenset({"false", "0", "no"})

SUBMIT_SELECTORS: Sequence[str] = (
    'button[type="submit"]',
    'input[type="submit"]',
    'button:has-text("Submit")',
    'button:has-text("Apply")',
    'button:has-text("Send")',
    ".submit-button",
    "#submit",
    '[data-testid="submit"]',
)

SUCCESS_PHRASES: Sequence[str] = (
    "thank you for applying",
    "thank you",
    "application received",
    "we have received your application",
    "application sent",
    "submitted",
    "success",
    "confirmation",
)

SUCCESS_URL_PATTERNS: Sequence[str] = (
    "success",
    "thank-you",
    "confirmation",
    "submitted",
    "complete",
)

# Field kind -> handler method name. Checked for completeness at import.
FIELD_ACTIONS: Mapping[FieldType, str] = {
    FieldType.TEXT: "_fill_text",
    FieldType.EMAIL: "_fill_text",
    FieldType.TEL: "_fill_text",
    FieldType.TEXTAREA: "_fill_text",
    FieldType.SELECT: "_choose_option",
    FieldType.CHECKBOX: "_toggle_checkbox",
    FieldType.RADIO: "_pick_radio",
    FieldType.FILE: "_upload_resume",
}

_missing_actions = set(FieldType) - set(FIELD_ACTIONS)
if _missing_actions:
    raise RuntimeError(
        f"No fill action for field types: {sorted(t.value for t in _missing_actions)}"
    )


@dataclass(frozen=True)
class _FieldRequest:
    """One field to act on, normalised from either strategy flavour."""

    selector: str
    raw_type: str
    value: str | None
    profile_field: str
    label: str
    required: bool
    action: str = "fill"


class FillSubmitAgent(BaseAgent):
    """Fills an application form from a strategy, submits it and looks for confirmation."""

    agent_type = TaskType.FILL_SUBMIT
    failure_message = "Application filling failed"

    def __init__(
        self,
        *,
        profile: CandidateProfile,
        llm: LLMClientPort | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._profile = profile
        self._llm = llm

    async def _run(self, page: Any, task: Task) -> AgentResult:
        form_data = task.payload.get("formData") or {}
        form_url = task.payload.get("applicationFormUrl") or task.job_url
        raw_strategy = form_data.get("autoFillStrategy")
        strategy = FillStrategy.from_dict(raw_strategy) if raw_strategy else None

        screenshots: list[str] = []
        await page.goto(form_url, wait_until="networkidle", timeout=NAVIGATION_TIMEOUT_MS)
        await self._collect(page, "before-filling", screenshots)

        if strategy is None:
            if self._llm is None:
                self._log("No fill strategy and no LLM available", LogLevel.ERROR)
                return AgentResult.failure(
                    self.failure_message,
                    "No fill strategy available",
                    retryable=False,
                    data=FillOutcome(error="No fill strategy available", screenshots=tuple(screenshots)).to_dict(),
                )
            requests = await self._improvise_requests(page)
            if requests is None:
                return AgentResult.failure(
                    self.failure_message,
                    "LLM form filling failed",
                    retryable=False,
                    data=FillOutcome(error="LLM form filling failed", screenshots=tuple(screenshots)).to_dict(),
                )
            legacy = True
        elif strategy.ai_guided:
            requests = [self._request_from_mapping(m) for m in strategy.fields]
            legacy = False
        else:
            requests = [self._request_from_step(s) for s in strategy.steps]
            legacy = True

        steps, failed_required = await self._fill_all(page, requests, legacy=legacy)
        await self._collect(page, "after-filling", screenshots)

        if failed_required is not None:
            error = f"Failed to fill required field: {failed_required.label or failed_required.field_type}"
            self._log(error, LogLevel.ERROR)
            outcome = FillOutcome(error=error, steps=tuple(steps), screenshots=tuple(screenshots))
            return AgentResult.failure(
                self.failure_message,
                error,
                retryable=failed_required.timed_out,
                data=outcome.to_dict(),
            )

        hint = strategy.submit_selector if strategy else None
        submitted_with = await self._submit(page, hint)
        if submitted_with is None:
            self._log("No submit button found", LogLevel.WARNING)
            outcome = FillOutcome(
                filled=True,
                error="No submit button found",
                steps=tuple(steps),
                screenshots=tuple(screenshots),
            )
            return AgentResult.ok("Application filled but not submitted", outcome.to_dict())

        self._log(f"Form submitted using selector: {submitted_with}")
        await page.wait_for_timeout(CONFIRMATION_GRACE_MS)
        await self._collect(page, "after-submission", screenshots)

        confirmed = await self._is_confirmed(page)
        outcome = FillOutcome(
            filled=True,
            submitted=True,
            confirmed=confirmed,
            error=None if confirmed else "Could not confirm successful submission",
            steps=tuple(steps),
            screenshots=tuple(screenshots),
        )
        self._log(f"Application submitted for {form_url} (confirmed={confirmed})")
        return AgentResult.ok("Application filling completed", outcome.to_dict())

    # -- filling -------------------------------------------------------------------------

    async def _fill_all(
        self,
        page: Any,
        requests: Sequence[_FieldRequest],
        *,
        legacy: bool,
    ) -> tuple[list[StepResult], StepResult | None]:
        """Fill fields in order; stop at the first required failure.

        A field whose type is not recognised is recorded as failed but never
        stops the run, even when it is marked required.
        """
        results: list[StepResult] = []
        delay = LEGACY_STEP_DELAY_MS if legacy else FIELD_DELAY_MS
        for request in requests:
            result = await self._fill_field(page, request, legacy=legacy)
            results.append(result)
            supported = legacy or FieldType.parse(request.raw_type) is not None
            if not result.success and request.required and supported:
                return results, result
            await page.wait_for_timeout(delay)
        return results, None

    async def _fill_field(self, page: Any, request: _FieldRequest, *, legacy: bool = False) -> StepResult:
        field_type = FieldType.parse(request.raw_type)
        if field_type is None and legacy:
            field_type = FieldType.TEXT

        if field_type is None:
            self._log(f"Unsupported field type '{request.raw_type}' for {request.label}", LogLevel.WARNING)
            return self._step(request, error=f"Unsupported field type: {request.raw_type}")

        try:
            await page.wait_for_selector(
                request.selector, state="visible", timeout=FIELD_VISIBLE_TIMEOUT_MS,
            )
        except PlaywrightTimeoutError as exc:
            self._log(f"Field not visible: {request.selector}", LogLevel.WARNING)
            return self._step(request, error=str(exc), timed_out=True)
        except PlaywrightError as exc:
            return self._step(request, error=str(exc))

        element = page.locator(request.selector).first
        handler: Callable[[Any, _FieldRequest], Awaitable[str | None]] = getattr(
            self, FIELD_ACTIONS[field_type],
        )
        try:
            error = await handler(element, request)
        except PlaywrightTimeoutError as exc:
            return self._step(request, error=str(exc), timed_out=True)
        except PlaywrightError as exc:
            self._log(f"Error filling field {request.label}: {exc}", LogLevel.ERROR)
            return self._step(request, error=str(exc))

        if error is not None:
            self._log(f"Skipped {request.label or request.selector}: {error}", LogLevel.DEBUG)
            return self._step(request, error=error)
        self._log(f"Filled: {request.label or request.selector}", LogLevel.DEBUG)
        return self._step(request, success=True)

    async def _fill_text(self, element: Any, request: _FieldRequest) -> str | None:
        if not request.value:
            return "No value to fill"
        await element.fill(request.value, timeout=ACTION_TIMEOUT_MS)
        return None

    async def _choose_option(self, element: Any, request: _FieldRequest) -> str | None:
        if not request.value:
            return "No option to select"
        try:
            await element.select_option(value=request.value, timeout=SELECT_ATTEMPT_TIMEOUT_MS)
            return None
        except PlaywrightError:
            pass
        try:
            await element.select_option(label=request.value, timeout=SELECT_ATTEMPT_TIMEOUT_MS)
            return None
        except PlaywrightError:
            pass
        await element.select_option(request.value, timeout=SELECT_ATTEMPT_TIMEOUT_MS)
        return None

    async def _toggle_checkbox(self, element: Any, request: _FieldRequest) -> str | None:
        token = (request.value or "").strip().lower()
        if token in TRUTHY_VALUES:
            await element.check(timeout=ACTION_TIMEOUT_MS)
            return None
        if token in FALSY_VALUES:
            await element.uncheck(timeout=ACTION_TIMEOUT_MS)
            return None
        return f"Unrecognised checkbox value: {request.value!r}"

    async def _pick_radio(self, element: Any, request: _FieldRequest) -> str | None:
        if not request.value:
            return "No value for radio button"
        await element.check(timeout=ACTION_TIMEOUT_MS)
        return None

    async def _upload_resume(self, element: Any, request: _FieldRequest) -> str | None:
        if request.profile_field not in RESUME_PROFILE_FIELDS:
            return f"Refusing to upload for field {request.profile_field!r}"
        if not self._profile.cv_file_path:
            return "No resume on file"
        await element.set_input_files(self._profile.cv_file_path, timeout=ACTION_TIMEOUT_MS)
        return None

    # -- strategy conversion -----------------------------------------------------------

    @staticmethod
    def _request_from_mapping(mapping: FieldMapping) -> _FieldRequest:
        return _FieldRequest(
            selector=mapping.selector,
            raw_type=mapping.field_type,
            value=mapping.value or None,
            profile_field=mapping.user_data_field,
            label=mapping.label,
            required=mapping.required,
        )

    @staticmethod
    def _request_from_step(step: FillStep) -> _FieldRequest:
        return _FieldRequest(
            selector=step.selector,
            raw_type=step.element_type,
            value=step.value,
            profile_field=step.field_type,
            label=step.field_type,
            required=step.required,
            action=step.action,
        )

    async def _improvise_requests(self, page: Any) -> list[_FieldRequest] | None:
        """Ask the general LLM for fill steps. Its answer is not validated."""
        elements: list[dict[str, object]] = []
        for field in await page.locator("form input, form textarea, form select").all():
            elements.append({
                "tagName": await field.evaluate("el => el.tagName.toLowerCase()"),
                "type": await field.get_attribute("type") or "",
                "name": await field.get_attribute("name") or "",
                "id": await field.get_attribute("id") or "",
                "placeholder": await field.get_attribute("placeholder") or "",
                "required": await field.get_attribute("required") is not None,
            })

        prompt = build_improvised_fill_prompt(form_elements=elements, profile=self._profile)
        reply = await self._llm.complete(prompt, temperature=0.1)
        data = extract_json_object(reply)
        if data is None or not isinstance(data.get("steps"), list):
            self._log("LLM reply did not contain fill steps", LogLevel.ERROR)
            return None
        self._log(f"LLM proposed {len(data['steps'])} fill steps")
        return [
            self._request_from_step(FillStep.from_dict(raw))
            for raw in data["steps"]
            if isinstance(raw, dict)
        ]

    # -- submission -----------------------------------------------------------------

    async def _submit(self, page: Any, hint: str | None) -> str | None:
        candidates = [hint] if hint else []
        candidates.extend(s for s in SUBMIT_SELECTORS if s != hint)
        for selector in candidates:
            try:
                button = page.locator(selector).first
                if not await button.is_visible(timeout=1000) or not await button.is_enabled():
                    continue
                await button.click(timeout=5000)
            except PlaywrightError:
                continue
            return selector
        return None

    async def _is_confirmed(self, page: Any) -> bool:
        try:
            body = (await page.inner_text("body")).lower()
        except PlaywrightError as exc:
            self._log(f"Error reading confirmation page: {exc}", LogLevel.WARNING)
            body = ""
        if any(phrase in body for phrase in SUCCESS_PHRASES):
            return True
        url = page.url.lower()
        return any(pattern in url for pattern in SUCCESS_URL_PATTERNS)

    # -- helpers -------------------------------------------------------------------------

    @staticmethod
    def _step(
        request: _FieldRequest,
        *,
        success: bool = False,
        error: str | None = None,
        timed_out: bool = False,
    ) -> StepResult:
        return StepResult(
            selector=request.selector,
            field_type=request.raw_type,
            success=success,
            label=request.label,
            value=request.value,
            error=error,
            timed_out=timed_out,
            action=request.action,
        )
