from __future__ import annotations

import json
import re
from typing import Any, Protocol

from domain.models import CandidateProfile, FormAnalysis, NavigationSuggestion
from domain.ports import LoggerPort
from domain.prompts import build_apply_button_prompt, build_form_analysis_prompt


class VisionChatClient(Protocol):
    async def complete_with_image(
        self,
        prompt: str,
        image_base64: str,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        ...


_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Return the outermost JSON object embedded in ``text``, if any."""
    match = _JSON_OBJECT.search(text or "")
    if match is None:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class VisionDecisionService:
    """
    ``DecisionServicePort`` backed by a vision-capable chat model.

    Unparseable replies come back as non-actionable answers; transport
    errors propagate so the calling agent can report them as retryable.
    """

    def __init__(
        self,
        client: VisionChatClient,
        *,
        logger: LoggerPort,
        max_tokens: int = 1000,
        form_max_tokens: int = 2000,
        temperature: float = 0.1,
    ) -> None:
        self._client = client
        self._logger = logger
        self._max_tokens = max_tokens
        self._form_max_tokens = form_max_tokens
        self._temperature = temperature

    async def analyze_for_apply_button(
        self,
        screenshot_base64: str,
        current_url: str,
        page_html: str | None = None,
    ) -> NavigationSuggestion:
        prompt = build_apply_button_prompt(current_url=current_url, page_html=page_html)
        reply = await self._client.complete_with_image(
            prompt,
            screenshot_base64,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )
        data = extract_json_object(reply)
        if data is None:
            self._logger.warning("vision_reply_unparseable", kind="apply_button", url=current_url)
            return NavigationSuggestion.unavailable("Failed to parse AI response")
        return NavigationSuggestion.from_dict(data)

    async def analyze_form_for_filling(
        self,
        screenshot_base64: str,
        page_html: str,
        profile: CandidateProfile,
        current_url: str,
    ) -> FormAnalysis:
        prompt = build_form_analysis_prompt(
            current_url=current_url,
            page_html=page_html,
            profile=profile,
        )
        reply = await self._client.complete_with_image(
            prompt,
            screenshot_base64,
            max_tokens=self._form_max_tokens,
            temperature=self._temperature,
        )
        data = extract_json_object(reply)
        if data is None:
            self._logger.warning("vision_reply_unparseable", kind="form_analysis", url=current_url)
            return FormAnalysis.unavailable("Failed to parse AI response")
        return FormAnalysis.from_dict(data)
