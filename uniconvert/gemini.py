from __future__ import annotations

import json
import logging
from typing import Any, Sequence

import requests

from uniconvert.config import Settings, load_settings
from uniconvert.errors import MissingCredentialError, SuggestionError
from uniconvert.suggestions import CurriculumItem, InvalidItem, Suggestion

logger = logging.getLogger(__name__)

RESPONSE_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "original_name": {"type": "STRING"},
            "suggested_code": {"type": "STRING"},
            "reason": {"type": "STRING"},
        },
    },
}

PROMPT_TEMPLATE = """You are an academic course conversion expert.

Task: Match student courses with invalid codes to the correct course in the target curriculum based on the Course Name (semantic similarity).

Target Curriculum (Format: "Code: Name"):
---
{curriculum}
---

Invalid Student Courses:
---
{invalid}
---

Return a JSON array where each object has:
- "original_name": The exact 'Course Name' from the Invalid list.
- "suggested_code": The 'Code' from the Target Curriculum that best matches. If no match is found, use "NO_MATCH".
- "reason": A very short explanation (max 10 words).
"""


def build_prompt(invalid_items: Sequence[InvalidItem], curriculum_items: Sequence[CurriculumItem]) -> str:
    curriculum = "\n".join(f"{item.code}: {item.course_name}" for item in curriculum_items)
    invalid = "\n".join(
        f"Current Code: {item.current_code}, Course Name: {item.course_name}" for item in invalid_items
    )
    return PROMPT_TEMPLATE.format(curriculum=curriculum, invalid=invalid)


def build_request_body(prompt: str) -> dict[str, Any]:
    return {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }


def _response_text(payload: Any) -> str:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as exc:
        raise SuggestionError("AI response did not contain any candidate text") from exc
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    return text or "[]"


def parse_suggestions(text: str) -> list[Suggestion]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SuggestionError(f"AI response is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise SuggestionError("AI response must be a JSON array")

    suggestions: list[Suggestion] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise SuggestionError(f"AI response item {index} is not an object")
        name = item.get("original_name")
        code = item.get("suggested_code")
        if not isinstance(name, str) or not isinstance(code, str):
            raise SuggestionError(f"AI response item {index} is missing original_name or suggested_code")
        reason = item.get("reason")
        suggestions.append(Suggestion(name, code, reason if isinstance(reason, str) else ""))
    return suggestions


class GeminiMatcher:
    """Course matcher backed by the Gemini generateContent REST endpoint."""

    def __init__(self, settings: Settings | None = None, session: requests.Session | None = None) -> None:
        self.settings = settings or load_settings()
        self._http = session or requests

    @property
    def endpoint(self) -> str:
        return f"{self.settings.api_base_url}/models/{self.settings.model}:generateContent"

    def __call__(
        self,
        invalid_items: Sequence[InvalidItem],
        curriculum_items: Sequence[CurriculumItem],
    ) -> list[Suggestion]:
        if not self.settings.has_credentials:
            raise MissingCredentialError("API key is missing; set UNICONVERT_API_KEY or GEMINI_API_KEY")

        body = build_request_body(build_prompt(invalid_items, curriculum_items))
        try:
            response = self._http.post(
                self.endpoint,
                headers={"x-goog-api-key": self.settings.api_key, "Content-Type": "application/json"},
                json=body,
                timeout=self.settings.request_timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "unknown"
            raise SuggestionError(f"AI matching request was rejected (HTTP {status})") from exc
        except requests.RequestException as exc:
            raise SuggestionError(f"AI matching request failed: {exc}") from exc
        except ValueError as exc:
            raise SuggestionError(f"AI response body is not JSON: {exc}") from exc

        suggestions = parse_suggestions(_response_text(payload))
        logger.debug("Gemini returned %d suggestions", len(suggestions))
        return suggestions
