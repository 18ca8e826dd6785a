"""Prompt builders for the vision decision service."""

from __future__ import annotations

import json

from domain.models import CandidateProfile

APPLY_BUTTON_HTML_LIMIT = 3000
FORM_HTML_LIMIT = 5000

_DIALOG_GUIDANCE = """\
DIALOG HANDLING:
If dialogs or popups block the page, look for:
- Cookie consent: "Accept", "Accept All", "I Agree", "OK"
- Notifications: "Allow", "Not Now", "No Thanks"
- Terms/Privacy: "Accept", "Agree", "Continue"
- Modals: close buttons (×, ✕), "Close", "Skip"
- Newsletter or email-subscription popups: X buttons (×, ✕) often in the
  top-right corner, "No Thanks", "Maybe Later", "Not interested"

If a dialog is present, report it first and give the selector that closes it.
"""


def build_apply_button_prompt(*, current_url: str, page_html: str | None) -> str:
    """Ask which control leads from a job posting to its application form."""

    html_block = ""
    if page_html:
        html_block = (
            "PAGE HTML STRUCTURE (for reference):\n"
            f"{page_html[:APPLY_BUTTON_HTML_LIMIT]}...\n\n"
        )

    return (
        "You are an expert web automation assistant. I need to find and click an "
        '"Apply" button to reach a job application form.\n'
        "\n"
        f"CURRENT URL: {current_url}\n"
        "\n"
        "TASK:\n"
        "1. FIRST: check whether any dialog, popup or overlay blocks the view.\n"
        '2. THEN: if the main content is visible, find the best "Apply" control.\n'
        "\n"
        f"{_DIALOG_GUIDANCE}"
        "\n"
        "APPLY BUTTON DETECTION:\n"
        '- "Apply Now", "Apply", "Apply for this Job", "Quick Apply",\n'
        '  "Start Application" buttons or links, or anything else that leads\n'
        "  to an application form.\n"
        "\n"
        f"{html_block}"
        "SELECTOR RULES:\n"
        '1. Prefer text selectors: button:has-text("Apply Now"), a:has-text("Apply").\n'
        "2. Use ids, data attributes or href patterns only when you can see them in the HTML.\n"
        "3. Never answer with bare tag selectors such as `button` or `a`.\n"
        "4. Give two or three alternative selectors built a different way.\n"
        "\n"
        "Return JSON with exactly this structure:\n"
        "{\n"
        '  "hasDialog": boolean,\n'
        '  "dialogAction": {"shouldClick": boolean, "selector": "CSS selector", "reason": "..."},\n'
        '  "applyAction": {\n'
        '    "shouldClick": boolean,\n'
        '    "selector": "CSS selector for the apply control",\n'
        '    "reason": "why this control was chosen",\n'
        '    "confidence": number between 0 and 100,\n'
        '    "alternativeSelectors": ["backup 1", "backup 2"]\n'
        "  }\n"
        "}\n"
    )


def build_form_analysis_prompt(
    *,
    current_url: str,
    page_html: str,
    profile: CandidateProfile,
) -> str:
    """Ask for a field-by-field mapping of an application form onto the profile."""

    profile_block = json.dumps(profile.to_prompt_dict(), indent=2)

    return (
        "You are an expert form automation assistant. Analyze this job application "
        "form and explain how to auto-fill it.\n"
        "\n"
        f"CURRENT URL: {current_url}\n"
        "\n"
        "USER PROFILE DATA:\n"
        f"{profile_block}\n"
        "\n"
        "FORM HTML:\n"
        f"{page_html[:FORM_HTML_LIMIT]}...\n"
        "\n"
        "TASK:\n"
        "1. FIRST: check whether any dialog blocks the form.\n"
        "2. THEN: decide whether this is a job application form.\n"
        "3. FINALLY: map every form field onto the user profile.\n"
        "\n"
        f"{_DIALOG_GUIDANCE}"
        "\n"
        "For each field give: a precise CSS selector (id > name > class), the field\n"
        "type (text, email, tel, textarea, select, file, checkbox, radio), the\n"
        "profile field it comes from, the exact value, whether it is required and\n"
        "your confidence. File uploads for the resume must use the profile field\n"
        '"cv_file_path".\n'
        "\n"
        "Return JSON with exactly this structure:\n"
        "{\n"
        '  "hasDialog": boolean,\n'
        '  "dialogAction": {"shouldClick": boolean, "selector": "CSS selector", "reason": "..."},\n'
        '  "isApplicationForm": boolean,\n'
        '  "confidence": number between 0 and 100,\n'
        '  "fields": [\n'
        "    {\n"
        '      "selector": "CSS selector",\n'
        '      "fieldType": "text|email|tel|textarea|select|file|checkbox|radio",\n'
        '      "label": "field label",\n'
        '      "userDataField": "profile field name",\n'
        '      "value": "exact value to enter",\n'
        '      "required": boolean,\n'
        '      "confidence": number between 0 and 100\n'
        "    }\n"
        "  ],\n"
        '  "submitButton": "CSS selector for the submit button",\n'
        '  "canAutoFill": boolean,\n'
        '  "reason": "explanation"\n'
        "}\n"
    )


def build_improvised_fill_prompt(
    *,
    form_elements: list[dict[str, object]],
    profile: CandidateProfile,
) -> str:
    """Last-resort prompt used when no fill strategy exists at all."""

    return (
        "I need to fill out a job application form. Here are the form elements:\n"
        f"{json.dumps(form_elements, indent=2)}\n"
        "\n"
        "User profile data:\n"
        f"{json.dumps(profile.to_prompt_dict(), indent=2)}\n"
        "\n"
        "Return only a JSON object with a \"steps\" array. Each step is\n"
        '{"selector": "...", "value": "...", "fieldType": "profile field",\n'
        ' "elementType": "text|email|tel|textarea|select|checkbox|radio|file",\n'
        ' "required": boolean}.\n'
    )
