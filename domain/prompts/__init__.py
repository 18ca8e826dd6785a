"""Prompt templates for the decision service and the fallback filler."""

from .decision_prompts import (  # noqa: F401
    build_apply_button_prompt,
    build_form_analysis_prompt,
    build_improvised_fill_prompt,
)

__all__ = [
    "build_apply_button_prompt",
    "build_form_analysis_prompt",
    "build_improvised_fill_prompt",
]
