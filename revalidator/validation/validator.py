"""Field validator collaborator contract and an HTTP chat-completion implementation."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

import httpx

from .models import MAX_FIELD_SCORE, FieldValidationResult

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

SYSTEM_PROMPT = """You are a precise ticket validator. Judge ONE ticket field against the
given rules. Only flag clear violations of explicit, measurable criteria.

Scoring: 9-10 meets all criteria, 7-8 minor violations, 5-6 missing 1-2 required
elements, 3-4 multiple missing elements, 1-2 severely incomplete.

Return only JSON:
{"isValid": boolean, "score": integer 1-10, "issues": [string], "suggestions": [string]}"""


class FieldValidationError(RuntimeError):
    """Raised when the collaborator fails or replies with unusable output."""


@dataclass(frozen=True, slots=True)
class FieldValidationRequest:
    """Everything the collaborator receives to judge one field."""

    ticket_key: str
    field: str
    value: str | None
    rules: str
    product_context: str | None = None
    previous: FieldValidationResult | None = None


class FieldValidator(Protocol):
    async def validate_field(self, request: FieldValidationRequest) -> FieldValidationResult:
        """Return a judgment for ``request.field`` or raise."""


def build_user_prompt(request: FieldValidationRequest) -> str:
    sections = [f"Validation Rules:\n{request.rules}"]
    if request.product_context:
        sections.append(f"Product Requirements:\n{request.product_context}")
    value = request.value if request.value is not None else "Unassigned"
    sections.append(f"Ticket {request.ticket_key}\nField: {request.field}\nValue: {value}")
    if request.previous is not None:
        previous = request.previous
        sections.append(
            "Previous feedback for this field "
            f"(score {previous.score}):\n"
            + "\n".join(f"- {issue}" for issue in previous.issues or ["no issues"])
            + "\nDo not repeat feedback that the new value already addresses."
        )
    return "\n\n".join(sections)


def parse_field_judgment(field_name: str, text: str) -> FieldValidationResult:
    """Interpret a collaborator reply; raise :class:`FieldValidationError` when unusable."""

    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        payload = json.loads(cleaned)
    except ValueError as exc:
        raise FieldValidationError(f"Reply for field '{field_name}' is not valid JSON") from exc
    if not isinstance(payload, Mapping):
        raise FieldValidationError(f"Reply for field '{field_name}' is not a JSON object")

    score = payload.get("score")
    if isinstance(score, float) and score.is_integer():
        score = int(score)
    if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= MAX_FIELD_SCORE:
        raise FieldValidationError(f"Reply for field '{field_name}' has an invalid score: {score!r}")

    is_valid = payload.get("isValid")
    if not isinstance(is_valid, bool):
        raise FieldValidationError(f"Reply for field '{field_name}' is missing 'isValid'")

    return FieldValidationResult(
        field=field_name,
        score=score,
        is_valid=is_valid,
        issues=_string_list(payload.get("issues")),
        suggestions=_string_list(payload.get("suggestions")),
    )


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value if str(item).strip()]
    raise FieldValidationError(f"Expected a list of strings, got {type(value).__name__}")


class ChatCompletionFieldValidator:
    """Field validator backed by an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        api_key: str | None = None,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._model = model
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._headers = headers
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def validate_field(self, request: FieldValidationRequest) -> FieldValidationResult:
        payload = {
            "model": self._model,
            "temperature": 0,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(request)},
            ],
        }
        try:
            response = await self._client.post(self._url, json=payload, headers=self._headers)
        except httpx.HTTPError as exc:
            raise FieldValidationError(f"Text generation request failed: {exc}") from exc

        if response.status_code >= 400:
            raise FieldValidationError(
                f"Text generation service returned {response.status_code}: {response.text[:200]}"
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise FieldValidationError("Unexpected text generation response shape") from exc
        if not isinstance(content, str):
            raise FieldValidationError("Text generation response has no text content")

        logger.debug("Received judgment for %s.%s", request.ticket_key, request.field)
        return parse_field_judgment(request.field, content)

    async def aclose(self) -> None:
        await self._client.aclose()
