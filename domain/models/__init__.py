from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Sequence


# -- workflow / task lifecycle ------------------------------------------------


class WorkflowStatus(str, Enum):
    """Lifecycle states of one end-to-end automation run."""

    INITIALIZING = "initializing"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_WORKFLOW_STATUSES


_TERMINAL_WORKFLOW_STATUSES = frozenset(
    {WorkflowStatus.COMPLETED, WorkflowStatus.FAILED, WorkflowStatus.CANCELLED}
)


class TaskType(str, Enum):
    """Pipeline stages; each maps to exactly one agent."""

    SITE_DISCOVERY = "site_discovery"
    FORM_SCORING = "form_scoring"
    FILL_SUBMIT = "fill_submit"


# Fill tasks outrank scoring, which outranks discovery, so one job is
# finished before discovery starts on the next.
TASK_PRIORITIES: Mapping[TaskType, int] = MappingProxyType({
    TaskType.SITE_DISCOVERY: 1,
    TaskType.FORM_SCORING: 2,
    TaskType.FILL_SUBMIT: 3,
})

DEFAULT_MAX_RETRIES = 3


class TaskStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class AgentResult:
    """
    Uniform return value of every agent.

    Agents never raise across their public boundary; failures are
    reported here and the orchestrator decides whether to retry.
    """

    success: bool
    message: str
    data: dict[str, Any] | None = None
    error: str | None = None
    retryable: bool = False

    @classmethod
    def ok(cls, message: str, data: dict[str, Any] | None = None) -> "AgentResult":
        return cls(success=True, message=message, data=data, retryable=False)

    @classmethod
    def failure(
        cls,
        message: str,
        error: str | None = None,
        *,
        retryable: bool = False,
        data: dict[str, Any] | None = None,
    ) -> "AgentResult":
        return cls(success=False, message=message, data=data, error=error, retryable=retryable)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "data": self.data,
            "error": self.error,
            "retryable": self.retryable,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AgentResult":
        return cls(
            success=bool(data.get("success", False)),
            message=str(data.get("message", "")),
            data=data.get("data"),
            error=data.get("error"),
            retryable=bool(data.get("retryable", False)),
        )


@dataclass(frozen=True)
class Workflow:
    """
    One automation run over a set of job URLs.

    Created by the caller, mutated only by the orchestrator.
    """

    id: str
    user_id: str
    search_query: str
    status: WorkflowStatus = WorkflowStatus.INITIALIZING
    total_jobs: int = 0
    processed_jobs: int = 0
    successful_applications: int = 0
    failed_applications: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def can_transition_to(self, status: WorkflowStatus) -> bool:
        if self.status.is_terminal:
            return False
        if status is WorkflowStatus.INITIALIZING:
            return self.status is WorkflowStatus.INITIALIZING
        return True


@dataclass(frozen=True)
class Task:
    """One unit of pipeline work belonging to a workflow."""

    id: str
    workflow_id: str
    type: TaskType
    job_id: str
    job_url: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    priority: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    current_retry: int = 0
    status: TaskStatus = TaskStatus.PENDING
    result: AgentResult | None = None
    assigned_agent: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def can_retry(self) -> bool:
        return self.current_retry < self.max_retries


@dataclass(frozen=True)
class LogEntry:
    """Append-only diagnostic record; never used for control decisions."""

    workflow_id: str
    agent: str
    message: str
    level: LogLevel
    timestamp: datetime


# -- candidate ---------------------------------------------------------------


@dataclass(frozen=True)
class CandidateProfile:
    """
    Candidate data used to fill application forms.

    ``cv_file_path`` points at the résumé kept on file; it is the only
    document the filler will ever upload.
    """

    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    country: str | None = None
    zip_code: str | None = None
    desired_position: str | None = None
    current_company: str | None = None
    website: str | None = None
    linkedin_url: str | None = None
    skills: Sequence[str] = field(default_factory=tuple)
    cv_file_path: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def value_for(self, canonical_field: str) -> str | None:
        """Look up a profile value by canonical field name (``first_name``, ``resume``...)."""
        key = _PROFILE_FIELD_ALIASES.get(canonical_field, canonical_field)
        if key == "full_name":
            return self.full_name or None
        if key == "skills":
            return ", ".join(self.skills) or None
        value = getattr(self, key, None)
        return value if isinstance(value, str) and value else None

    def to_prompt_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["skills"] = list(self.skills)
        data["full_name"] = self.full_name
        return {k: v for k, v in data.items() if v not in (None, "", [])}


_PROFILE_FIELD_ALIASES: Mapping[str, str] = MappingProxyType({
    "firstName": "first_name",
    "lastName": "last_name",
    "fullName": "full_name",
    "zipCode": "zip_code",
    "position": "desired_position",
    "company": "current_company",
    "linkedin": "linkedin_url",
    "resume": "cv_file_path",
})


# -- page structure ------------------------------------------------------------


@dataclass(frozen=True)
class FormElement:
    """Structural descriptor of one input/textarea/select found on a page."""

    type: str
    name: str = ""
    id: str = ""
    label: str = ""
    placeholder: str = ""
    required: bool = False
    options: Sequence[str] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "id": self.id,
            "label": self.label,
            "placeholder": self.placeholder,
            "required": self.required,
            "options": list(self.options),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormElement":
        return cls(
            type=str(data.get("type") or "text"),
            name=str(data.get("name") or ""),
            id=str(data.get("id") or ""),
            label=str(data.get("label") or ""),
            placeholder=str(data.get("placeholder") or ""),
            required=bool(data.get("required", False)),
            options=tuple(data.get("options") or ()),
        )


@dataclass(frozen=True)
class SweepResult:
    dialogs_handled: int = 0
    dialogs_found: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class RemainingDialogs:
    has_dialogs: bool = False
    dialog_elements: Sequence[str] = field(default_factory=tuple)


# -- decision service contract --------------------------------------------------


class FieldType(str, Enum):
    """Closed set of field kinds the filler knows how to act on."""

    TEXT = "text"
    EMAIL = "email"
    TEL = "tel"
    TEXTAREA = "textarea"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    FILE = "file"

    @classmethod
    def parse(cls, raw: str | None) -> "FieldType | None":
        if not raw:
            return None
        normalized = raw.strip().lower()
        normalized = _FIELD_TYPE_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return None


_FIELD_TYPE_ALIASES: Mapping[str, str] = MappingProxyType({
    "phone": "tel",
    "multiline": "textarea",
    "dropdown": "select",
    "upload": "file",
})


@dataclass(frozen=True)
class DialogAction:
    should_click: bool = False
    selector: str | None = None
    reason: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "DialogAction":
        data = data or {}
        return cls(
            should_click=bool(data.get("shouldClick", data.get("should_click", False))),
            selector=data.get("selector") or None,
            reason=str(data.get("reason") or ""),
        )


@dataclass(frozen=True)
class ApplyAction:
    should_click: bool = False
    selector: str | None = None
    reason: str = ""
    confidence: float = 0
    alternative_selectors: Sequence[str] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ApplyAction":
        data = data or {}
        alternatives = data.get("alternativeSelectors", data.get("alternative_selectors")) or ()
        return cls(
            should_click=bool(data.get("shouldClick", data.get("should_click", False))),
            selector=data.get("selector") or None,
            reason=str(data.get("reason") or ""),
            confidence=_as_number(data.get("confidence")),
            alternative_selectors=tuple(str(s) for s in alternatives if s),
        )


@dataclass(frozen=True)
class NavigationSuggestion:
    """Decision-service answer to "which control leads to the application form?"."""

    has_dialog: bool = False
    dialog_action: DialogAction = field(default_factory=DialogAction)
    apply_action: ApplyAction = field(default_factory=ApplyAction)

    @classmethod
    def unavailable(cls, reason: str) -> "NavigationSuggestion":
        return cls(
            dialog_action=DialogAction(reason=reason),
            apply_action=ApplyAction(reason=reason),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NavigationSuggestion":
        return cls(
            has_dialog=bool(data.get("hasDialog", data.get("has_dialog", False))),
            dialog_action=DialogAction.from_dict(data.get("dialogAction", data.get("dialog_action"))),
            apply_action=ApplyAction.from_dict(data.get("applyAction", data.get("apply_action"))),
        )


@dataclass(frozen=True)
class FieldMapping:
    """
    One form field as identified by the decision service.

    ``field_type`` is kept as the raw string the service returned; the
    filler parses it into a :class:`FieldType` and treats unknown kinds
    as a failed step.
    """

    selector: str
    field_type: str
    label: str = ""
    user_data_field: str = ""
    value: str = ""
    required: bool = False
    confidence: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "fieldType": self.field_type,
            "label": self.label,
            "userDataField": self.user_data_field,
            "value": self.value,
            "required": self.required,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldMapping":
        value = data.get("value")
        return cls(
            selector=str(data.get("selector") or ""),
            field_type=str(data.get("fieldType", data.get("field_type")) or ""),
            label=str(data.get("label") or ""),
            user_data_field=str(data.get("userDataField", data.get("user_data_field")) or ""),
            value="" if value is None else str(value),
            required=bool(data.get("required", False)),
            confidence=_as_number(data.get("confidence")),
        )


@dataclass(frozen=True)
class FormAnalysis:
    """Decision-service judgment of a candidate application form."""

    has_dialog: bool = False
    dialog_action: DialogAction = field(default_factory=DialogAction)
    is_application_form: bool = False
    confidence: float = 0
    fields: Sequence[FieldMapping] = field(default_factory=tuple)
    submit_button: str | None = None
    can_auto_fill: bool = False
    reason: str = ""

    @classmethod
    def unavailable(cls, reason: str) -> "FormAnalysis":
        return cls(dialog_action=DialogAction(reason=reason), reason=reason)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormAnalysis":
        return cls(
            has_dialog=bool(data.get("hasDialog", data.get("has_dialog", False))),
            dialog_action=DialogAction.from_dict(data.get("dialogAction", data.get("dialog_action"))),
            is_application_form=bool(
                data.get("isApplicationForm", data.get("is_application_form", False))
            ),
            confidence=_as_number(data.get("confidence")),
            fields=tuple(
                FieldMapping.from_dict(f)
                for f in data.get("fields") or ()
                if isinstance(f, Mapping)
            ),
            submit_button=data.get("submitButton", data.get("submit_button")) or None,
            can_auto_fill=bool(data.get("canAutoFill", data.get("can_auto_fill", False))),
            reason=str(data.get("reason") or ""),
        )


# -- fill strategies --------------------------------------------------------------


DEFAULT_SUBMIT_SELECTOR = 'button[type="submit"], input[type="submit"]'


@dataclass(frozen=True)
class FillStep:
    """One step of a keyword-derived (legacy) fill strategy."""

    selector: str
    field_type: str
    value: str | None = None
    required: bool = False
    element_type: str = "text"
    action: str = "fill"

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "selector": self.selector,
            "fieldType": self.field_type,
            "value": self.value,
            "required": self.required,
            "elementType": self.element_type,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FillStep":
        value = data.get("value")
        return cls(
            action=str(data.get("action") or "fill"),
            selector=str(data.get("selector") or ""),
            field_type=str(data.get("fieldType", data.get("field_type")) or ""),
            value=None if value is None else str(value),
            required=bool(data.get("required", False)),
            element_type=str(data.get("elementType", data.get("element_type")) or "text"),
        )


@dataclass(frozen=True)
class FillStrategy:
    """
    Instructions handed from the scoring stage to the fill stage.

    AI-guided strategies carry ``fields``; legacy strategies carry
    ``steps`` keyed by raw element type.
    """

    ai_guided: bool
    fields: Sequence[FieldMapping] = field(default_factory=tuple)
    steps: Sequence[FillStep] = field(default_factory=tuple)
    submit_selector: str = DEFAULT_SUBMIT_SELECTOR
    confidence: float = 0
    form_selector: str = "form"
    required_user_profile: Sequence[str] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        if self.ai_guided:
            return {
                "aiGuidedFilling": True,
                "fields": [f.to_dict() for f in self.fields],
                "submitSelector": self.submit_selector,
                "confidence": self.confidence,
            }
        return {
            "aiGuidedFilling": False,
            "steps": [s.to_dict() for s in self.steps],
            "formSelector": self.form_selector,
            "submitSelector": self.submit_selector,
            "requiredUserProfile": list(self.required_user_profile),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FillStrategy":
        return cls(
            ai_guided=bool(data.get("aiGuidedFilling", False)),
            fields=tuple(FieldMapping.from_dict(f) for f in data.get("fields") or ()),
            steps=tuple(FillStep.from_dict(s) for s in data.get("steps") or ()),
            submit_selector=str(data.get("submitSelector") or DEFAULT_SUBMIT_SELECTOR),
            confidence=_as_number(data.get("confidence")),
            form_selector=str(data.get("formSelector") or "form"),
            required_user_profile=tuple(data.get("requiredUserProfile") or ()),
        )


@dataclass(frozen=True)
class StepResult:
    """Outcome of acting on one field."""

    selector: str
    field_type: str
    success: bool = False
    label: str = ""
    value: str | None = None
    error: str | None = None
    timed_out: bool = False
    action: str = "fill"

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "selector": self.selector,
            "fieldType": self.field_type,
            "label": self.label,
            "value": self.value,
            "success": self.success,
            "error": self.error,
            "timedOut": self.timed_out,
        }


# -- stage outputs ------------------------------------------------------------------


@dataclass(frozen=True)
class SiteCheckResult:
    """Output of site discovery; carried forward in the scoring task payload."""

    accessible: bool = False
    has_application_form: bool = False
    application_form_url: str | None = None
    form_elements: Sequence[FormElement] = field(default_factory=tuple)
    screenshots: Sequence[str] = field(default_factory=tuple)
    navigated: bool = False
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "accessible": self.accessible,
            "hasApplicationForm": self.has_application_form,
            "applicationFormUrl": self.application_form_url,
            "formElements": [e.to_dict() for e in self.form_elements],
            "screenshots": list(self.screenshots),
            "navigated": self.navigated,
            "errorMessage": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SiteCheckResult":
        return cls(
            accessible=bool(data.get("accessible", False)),
            has_application_form=bool(data.get("hasApplicationForm", False)),
            application_form_url=data.get("applicationFormUrl"),
            form_elements=tuple(FormElement.from_dict(e) for e in data.get("formElements") or ()),
            screenshots=tuple(data.get("screenshots") or ()),
            navigated=bool(data.get("navigated", False)),
            error_message=data.get("errorMessage"),
        )


@dataclass(frozen=True)
class FormScoreResult:
    """Output of form scoring; carried forward in the fill task payload."""

    can_auto_fill: bool = False
    confidence: float = 0
    application_form_url: str | None = None
    required_fields: Sequence[str] = field(default_factory=tuple)
    supported_fields: Sequence[str] = field(default_factory=tuple)
    unsupported_fields: Sequence[str] = field(default_factory=tuple)
    form_elements: Sequence[FormElement] = field(default_factory=tuple)
    auto_fill_strategy: FillStrategy | None = None
    screenshots: Sequence[str] = field(default_factory=tuple)
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "canAutoFill": self.can_auto_fill,
            "confidence": self.confidence,
            "applicationFormUrl": self.application_form_url,
            "requiredFields": list(self.required_fields),
            "supportedFields": list(self.supported_fields),
            "unsupportedFields": list(self.unsupported_fields),
            "formElements": [e.to_dict() for e in self.form_elements],
            "autoFillStrategy": (
                self.auto_fill_strategy.to_dict() if self.auto_fill_strategy else None
            ),
            "screenshots": list(self.screenshots),
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormScoreResult":
        strategy = data.get("autoFillStrategy")
        return cls(
            can_auto_fill=bool(data.get("canAutoFill", False)),
            confidence=_as_number(data.get("confidence")),
            application_form_url=data.get("applicationFormUrl"),
            required_fields=tuple(data.get("requiredFields") or ()),
            supported_fields=tuple(data.get("supportedFields") or ()),
            unsupported_fields=tuple(data.get("unsupportedFields") or ()),
            form_elements=tuple(FormElement.from_dict(e) for e in data.get("formElements") or ()),
            auto_fill_strategy=FillStrategy.from_dict(strategy) if strategy else None,
            screenshots=tuple(data.get("screenshots") or ()),
            reason=str(data.get("reason") or ""),
        )


@dataclass(frozen=True)
class FillOutcome:
    """Output of the fill & submit stage."""

    filled: bool = False
    submitted: bool = False
    confirmed: bool = False
    error: str | None = None
    steps: Sequence[StepResult] = field(default_factory=tuple)
    screenshots: Sequence[str] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "filled": self.filled,
            "submitted": self.submitted,
            "confirmed": self.confirmed,
            "error": self.error,
            "steps": [s.to_dict() for s in self.steps],
            "screenshots": list(self.screenshots),
        }


# -- configuration ---------------------------------------------------------------------


@dataclass(frozen=True)
class AppConfig:
    """Application-level configuration loaded from config.json."""

    openai_key: str
    openai_base_url: str
    openai_model: str = "gpt-4o"
    vision_model: str = "gpt-4o"
    headless: bool = True
    inter_task_delay_seconds: float = 1.0
    max_retries: int = DEFAULT_MAX_RETRIES
    screenshots_dir: str = "screenshots"
    use_vision: bool = True


def _as_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


__all__ = [
    "WorkflowStatus",
    "TaskType",
    "TaskStatus",
    "LogLevel",
    "TASK_PRIORITIES",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_SUBMIT_SELECTOR",
    "AgentResult",
    "Workflow",
    "Task",
    "LogEntry",
    "CandidateProfile",
    "FormElement",
    "SweepResult",
    "RemainingDialogs",
    "FieldType",
    "DialogAction",
    "ApplyAction",
    "NavigationSuggestion",
    "FieldMapping",
    "FormAnalysis",
    "FillStep",
    "FillStrategy",
    "StepResult",
    "SiteCheckResult",
    "FormScoreResult",
    "FillOutcome",
    "AppConfig",
]
