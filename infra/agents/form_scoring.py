from __future__ import annotations

from typing import Any, Sequence

from domain.models import (
    DEFAULT_SUBMIT_SELECTOR,
    AgentResult,
    CandidateProfile,
    FillStep,
    FillStrategy,
    FormAnalysis,
    FormElement,
    FormScoreResult,
    SiteCheckResult,
    Task,
    TaskType,
)
from domain.ports import DecisionServicePort

from .base_agent import BaseAgent

NAVIGATION_TIMEOUT_MS = 30_000
SETTLE_MS = 3000
MIN_FIELD_CONFIDENCE = 70
MIN_LEGACY_CONFIDENCE = 70

# Order matters: the first table whose keyword appears in a field's
# name/id/label/placeholder wins, so specific names come before "name".
FIELD_KEYWORDS: Sequence[tuple[str, Sequence[str]]] = (
    ("last_name", ("last", "lname", "lastname", "surname", "family")),
    ("first_name", ("first", "fname", "firstname", "given")),
    ("email", ("email", "mail", "e-mail")),
    ("phone", ("phone", "telephone", "mobile", "cell", "contact")),
    ("address", ("address", "street", "location")),
    ("city", ("city", "town", "locality")),
    ("country", ("country", "nation")),
    ("zip_code", ("zip", "postal", "postcode")),
    ("desired_position", ("position", "title", "job", "role")),
    ("current_company", ("company", "employer", "organization", "workplace")),
    ("experience", ("experience", "years", "exp")),
    ("skills", ("skills", "skill", "competencies", "abilities")),
    ("education", ("education", "degree", "school", "university", "college")),
    ("cv_file_path", ("resume", "cv", "file", "upload", "document")),
    ("cover_letter", ("cover", "letter", "motivation", "message")),
    ("linkedin_url", ("linkedin",)),
    ("website", ("website", "portfolio", "url", "link")),
    ("salary", ("salary", "compensation", "wage", "pay")),
    ("availability", ("availability", "start", "notice")),
    ("reference", ("reference", "referee")),
    ("full_name", ("fullname", "full name", "name")),
)

UNKNOWN_FIELD = "unknown"


def identify_field(element: FormElement) -> str:
    """Map a structural descriptor onto a canonical profile field name."""
    haystack = f"{element.name} {element.id} {element.label} {element.placeholder}".lower()
    for canonical, keywords in FIELD_KEYWORDS:
        if any(keyword in haystack for keyword in keywords):
            return canonical
    return UNKNOWN_FIELD


def field_selector(element: FormElement) -> str:
    if element.id:
        return f"#{element.id}"
    if element.name:
        return f'[name="{element.name}"]'
    return f'[placeholder="{element.placeholder}"]'


class FormScoringAgent(BaseAgent):
    """
    Judges whether an application form can be filled automatically.

    With a decision service the judgment is made from a screenshot and the
    page markup. Without one, the structural descriptors collected during
    discovery are classified with keyword tables.
    """

    agent_type = TaskType.FORM_SCORING
    failure_message = "Form analysis failed"

    def __init__(
        self,
        *,
        profile: CandidateProfile,
        decision_service: DecisionServicePort | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._profile = profile
        self._decision_service = decision_service

    async def _run(self, page: Any, task: Task) -> AgentResult:
        site_result = SiteCheckResult.from_dict(task.payload.get("siteResult") or {})
        form_url = task.payload.get("applicationFormUrl") or task.job_url

        if self._decision_service is None:
            result = self.score_elements(site_result.form_elements, form_url=form_url)
        else:
            result = await self._score_with_vision(page, form_url, site_result.form_elements)

        self._log(
            f"Form analysis: canAutoFill={result.can_auto_fill}, "
            f"confidence={result.confidence:.0f}%"
        )
        return AgentResult.ok("Form analysis completed", result.to_dict())

    # -- vision path -----------------------------------------------------------------

    async def _score_with_vision(
        self,
        page: Any,
        form_url: str,
        form_elements: Sequence[FormElement],
    ) -> FormScoreResult:
        await page.goto(form_url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
        await page.wait_for_timeout(SETTLE_MS)
        await self._sweep_dialogs(page)

        screenshots: list[str] = []
        path = await self._take_screenshot(page, "form-analysis")
        if path:
            screenshots.append(path)

        analysis = await self._analyze(page, form_url)
        if analysis.has_dialog and analysis.dialog_action.should_click and analysis.dialog_action.selector:
            closed = await self._click_flagged_dialog(
                page, analysis.dialog_action.selector, analysis.dialog_action.reason,
            )
            if closed:
                analysis = await self._analyze(page, form_url)

        self._log(f"Analysis: {analysis.reason} (confidence: {analysis.confidence:.0f}%)")
        return self.score_analysis(
            analysis,
            form_url=form_url,
            form_elements=form_elements,
            screenshots=screenshots,
        )

    async def _analyze(self, page: Any, form_url: str) -> FormAnalysis:
        screenshot = await self._screenshot_base64(page, full_page=True)
        html = await page.content()
        return await self._decision_service.analyze_form_for_filling(
            screenshot, html, self._profile, form_url,
        )

    @staticmethod
    def score_analysis(
        analysis: FormAnalysis,
        *,
        form_url: str,
        form_elements: Sequence[FormElement] = (),
        screenshots: Sequence[str] = (),
    ) -> FormScoreResult:
        """Turn the decision service's field mapping into a fill decision."""
        if not analysis.is_application_form:
            return FormScoreResult(
                can_auto_fill=False,
                confidence=0,
                application_form_url=form_url,
                form_elements=tuple(form_elements),
                screenshots=tuple(screenshots),
                reason=analysis.reason or "Not a job application form",
            )

        required: list[str] = []
        supported: list[str] = []
        unsupported: list[str] = []
        required_unsupported = False

        for mapping in analysis.fields:
            if mapping.confidence >= MIN_FIELD_CONFIDENCE:
                supported.append(mapping.user_data_field)
                if mapping.required:
                    required.append(mapping.user_data_field)
            else:
                unsupported.append(mapping.label or mapping.selector)
                required_unsupported = required_unsupported or mapping.required

        can_auto_fill = analysis.can_auto_fill and bool(analysis.fields) and not required_unsupported
        reason = analysis.reason
        if analysis.can_auto_fill and required_unsupported:
            reason = "A required field could not be mapped confidently"

        strategy = None
        if can_auto_fill:
            strategy = FillStrategy(
                ai_guided=True,
                fields=tuple(analysis.fields),
                submit_selector=analysis.submit_button or DEFAULT_SUBMIT_SELECTOR,
                confidence=analysis.confidence,
            )

        return FormScoreResult(
            can_auto_fill=can_auto_fill,
            confidence=analysis.confidence,
            application_form_url=form_url,
            required_fields=tuple(required),
            supported_fields=tuple(supported),
            unsupported_fields=tuple(unsupported),
            form_elements=tuple(form_elements),
            auto_fill_strategy=strategy,
            screenshots=tuple(screenshots),
            reason=reason,
        )

    # -- keyword path ------------------------------------------------------------------

    def score_elements(
        self,
        form_elements: Sequence[FormElement],
        *,
        form_url: str,
    ) -> FormScoreResult:
        required: list[str] = []
        supported: list[str] = []
        unsupported: list[str] = []
        steps: list[FillStep] = []
        required_profile: list[str] = []

        for element in form_elements:
            canonical = identify_field(element)
            if element.required:
                required.append(canonical)
            if canonical == UNKNOWN_FIELD:
                unsupported.append(element.name or element.id or element.label or UNKNOWN_FIELD)
                continue

            supported.append(canonical)
            steps.append(
                FillStep(
                    selector=field_selector(element),
                    field_type=canonical,
                    value=self._profile.value_for(canonical),
                    required=element.required,
                    element_type=element.type,
                )
            )
            if element.required:
                required_profile.append(canonical)

        total = len(form_elements)
        confidence = round(len(supported) / total * 100) if total else 0
        can_auto_fill = confidence >= MIN_LEGACY_CONFIDENCE and bool(required)

        strategy = None
        if can_auto_fill:
            strategy = FillStrategy(
                ai_guided=False,
                steps=tuple(steps),
                required_user_profile=tuple(required_profile),
            )

        return FormScoreResult(
            can_auto_fill=can_auto_fill,
            confidence=confidence,
            application_form_url=form_url,
            required_fields=tuple(required),
            supported_fields=tuple(supported),
            unsupported_fields=tuple(unsupported),
            form_elements=tuple(form_elements),
            auto_fill_strategy=strategy,
            reason=f"{len(supported)} of {total} fields recognised",
        )
