from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from playwright.async_api import Error as PlaywrightError

from domain.models import (
    ApplyAction,
    DialogAction,
    NavigationSuggestion,
    SiteCheckResult,
    Task,
    TaskType,
)
from infra.agents import SiteDiscoveryAgent
from test.mocks import (
    FakeBrowser,
    FakeElement,
    FakePage,
    FixedClock,
    InMemoryLogger,
    InMemoryLogRepository,
    InMemoryScreenshotStore,
    ScriptedDecisionService,
    application_form,
    input_field,
)

JOB_URL = "https://jobs.example.com/posting/42"
APPLY_URL = "https://jobs.example.com/posting/42/apply"


def _task() -> Task:
    return Task(
        id="site_discovery-job-0-task-1",
        workflow_id="wf-1",
        type=TaskType.SITE_DISCOVERY,
        job_id="job-0",
        job_url=JOB_URL,
        payload={"jobUrl": JOB_URL},
    )


def _agent(browser: FakeBrowser, **kwargs: Any) -> tuple[SiteDiscoveryAgent, InMemoryLogRepository, InMemoryScreenshotStore]:
    logs = InMemoryLogRepository()
    store = InMemoryScreenshotStore()
    agent = SiteDiscoveryAgent(
        browser=browser,
        log_repo=logs,
        logger=InMemoryLogger(),
        clock=FixedClock(datetime(2025, 1, 1, tzinfo=timezone.utc)),
        workflow_id="wf-1",
        screenshot_store=store,
        **kwargs,
    )
    return agent, logs, store


def _form_page(page: FakePage) -> None:
    country = FakeElement(
        tag="select",
        attrs={"name": "country", "id": "country"},
        children={"option": [
            FakeElement(tag="option", text="", attrs={"value": ""}),
            FakeElement(tag="option", text="France", attrs={"value": "fr"}),
        ]},
    )
    page.add(
        "form",
        application_form(
            input_field(name="first_name", id="first_name", required=True),
            input_field(name="email", id="email", type="email", required=True, parent_text="  Email address * "),
            input_field(name="phone", id="phone", type="tel"),
            country,
            labels={"first_name": "First Name"},
        ),
    )


def _apply_link(selector: str, text: str = "Apply Now") -> Any:
    def build(page: FakePage) -> None:
        page.add(selector, FakeElement(tag="a", text=text, on_click=lambda: page.navigate(APPLY_URL)))

    return build


def test_form_on_landing_page_is_described_without_navigation() -> None:
    browser = FakeBrowser(sites={JOB_URL: _form_page})
    agent, _, store = _agent(browser)

    result = asyncio.run(agent.execute(_task()))

    assert result.success
    assert result.message == "Website check completed"
    site = SiteCheckResult.from_dict(result.data or {})
    assert site.accessible and site.has_application_form
    assert not site.navigated
    assert site.application_form_url == JOB_URL
    first, email, phone, country = site.form_elements
    assert (first.type, first.label, first.required) == ("text", "First Name", True)
    assert (email.type, email.label) == ("email", "Email address *")
    assert phone.type == "tel" and not phone.required
    assert (country.type, country.options) == ("select", ("France",))
    assert store.names == ["initial-load", "application-form"]
    assert browser.pages[0].visited == [(JOB_URL, "domcontentloaded")]
    assert browser.pages[0].closed


def test_decision_service_apply_link_leads_to_form() -> None:
    browser = FakeBrowser(sites={JOB_URL: _apply_link('a:has-text("Apply Now")'), APPLY_URL: _form_page})
    decisions = ScriptedDecisionService(navigation=[
        NavigationSuggestion(
            apply_action=ApplyAction(
                should_click=True,
                selector='a:has-text("Apply Now")',
                reason="Primary call to action",
                confidence=92,
            ),
        ),
    ])
    agent, logs, store = _agent(browser, decision_service=decisions)

    result = asyncio.run(agent.execute(_task()))

    site = SiteCheckResult.from_dict(result.data or {})
    assert site.navigated
    assert site.has_application_form
    assert site.application_form_url == APPLY_URL
    assert decisions.apply_calls[0][0] == JOB_URL
    assert store.names == ["initial-load", "after-navigation", "application-form"]
    assert f"Navigated to: {APPLY_URL}" in logs.messages()


def test_low_confidence_suggestion_falls_back_to_known_selectors() -> None:
    browser = FakeBrowser(sites={JOB_URL: _apply_link("#apply-button"), APPLY_URL: _form_page})
    decisions = ScriptedDecisionService(navigation=[
        NavigationSuggestion(
            apply_action=ApplyAction(should_click=True, selector="#maybe", confidence=40),
        ),
    ])
    agent, logs, _ = _agent(browser, decision_service=decisions)

    result = asyncio.run(agent.execute(_task()))

    site = SiteCheckResult.from_dict(result.data or {})
    assert site.navigated and site.application_form_url == APPLY_URL
    assert "Apply button confidence too low (40%)" in logs.messages()


def test_flagged_dialog_is_closed_and_page_reanalysed() -> None:
    close_button = FakeElement(tag="button", hide_on_click=True)

    def job_page(page: FakePage) -> None:
        page.add("#newsletter-close", close_button)
        _apply_link('a:has-text("Apply Now")')(page)

    browser = FakeBrowser(sites={JOB_URL: job_page, APPLY_URL: _form_page})
    decisions = ScriptedDecisionService(navigation=[
        NavigationSuggestion(
            has_dialog=True,
            dialog_action=DialogAction(should_click=True, selector="#newsletter-close", reason="Newsletter popup"),
        ),
        NavigationSuggestion(
            apply_action=ApplyAction(should_click=True, selector='a:has-text("Apply Now")', confidence=88),
        ),
    ])
    agent, _, _ = _agent(browser, decision_service=decisions)

    result = asyncio.run(agent.execute(_task()))

    assert close_button.clicks == 1
    assert len(decisions.apply_calls) == 2
    assert SiteCheckResult.from_dict(result.data or {}).application_form_url == APPLY_URL


def test_without_decision_service_last_resort_scan_finds_apply_text() -> None:
    dead_button = FakeElement(tag="button", text="Apply Now")

    def job_page(page: FakePage) -> None:
        page.add('button:has-text("Apply Now")', dead_button)
        page.add(
            '*:has-text("Apply")',
            FakeElement(text="Read our long and winding company story before you decide to apply"),
            FakeElement(text="Apply here", on_click=lambda: page.navigate(APPLY_URL)),
        )

    browser = FakeBrowser(sites={JOB_URL: job_page, APPLY_URL: _form_page})
    agent, _, _ = _agent(browser)

    result = asyncio.run(agent.execute(_task()))

    site = SiteCheckResult.from_dict(result.data or {})
    assert dead_button.clicks == 1
    assert site.navigated
    assert site.has_application_form


def test_page_without_form_or_apply_control_reports_no_form() -> None:
    browser = FakeBrowser()
    agent, logs, _ = _agent(browser, decision_service=ScriptedDecisionService())

    result = asyncio.run(agent.execute(_task()))

    site = SiteCheckResult.from_dict(result.data or {})
    assert result.success
    assert site.accessible
    assert not site.has_application_form
    assert f"No job application form found on: {JOB_URL}" in logs.messages()


def test_unreachable_site_is_a_retryable_failure_with_evidence() -> None:
    page = FakePage(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
    browser = FakeBrowser(pages=[page])
    agent, _, store = _agent(browser)

    result = asyncio.run(agent.execute(_task()))

    assert not result.success
    assert result.retryable
    assert result.message == "Website check failed"
    assert result.data is not None
    assert result.data["accessible"] is False
    assert "ERR_NAME_NOT_RESOLVED" in result.data["errorMessage"]
    assert store.names == ["error"]
    assert page.closed


def test_decision_service_error_becomes_retryable_failure() -> None:
    browser = FakeBrowser()
    agent, _, _ = _agent(browser, decision_service=ScriptedDecisionService(error=OSError("connection reset")))

    result = asyncio.run(agent.execute(_task()))

    assert not result.success
    assert result.retryable
    assert result.error == "connection reset"
    assert browser.pages[0].closed
