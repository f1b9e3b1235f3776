"""Helpers to pull the model's text out of Responses API output and decode it."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from pydantic import ValidationError

from models.solve_models import QuestionsResponse
from services.errors import ParseError


def _get(item: Any, key: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(key, default)
    return getattr(item, key, default)


def extract_text(response: Any) -> str:
    """Join every ``output_text`` entry from the response, in order."""
    texts = []
    for item in _get(response, "output", None) or []:
        if _get(item, "type") != "message":
            continue
        for content in _get(item, "content", None) or []:
            if _get(content, "type") == "output_text":
                texts.append(_get(content, "text", "") or "")
    if texts:
        return "\n".join(texts)
    return _get(response, "output_text", "") or ""


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
    """Return token usage if present."""
    usage = _get(response, "usage", None)
    return {
        "input_tokens": _get(usage, "input_tokens", None) if usage else None,
        "output_tokens": _get(usage, "output_tokens", None) if usage else None,
    }


def extract_json_object(raw: str) -> str:
    """Return the substring from the first ``{`` to the last ``}``."""
    trimmed = (raw or "").strip()
    start = trimmed.find("{")
    end = trimmed.rfind("}")
    if start == -1 or end == -1 or end < start:
        return trimmed
    return trimmed[start:end + 1]


def parse_questions(raw: str) -> QuestionsResponse:
    """Decode a model reply into ``QuestionsResponse`` or raise ``ParseError``."""
    candidate = extract_json_object(raw)
    if not candidate:
        raise ParseError("Empty reply from the answer service.", raw_reply=raw or "")
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Reply was not valid JSON: {exc}", raw_reply=raw) from exc
    try:
        parsed = QuestionsResponse.model_validate(payload)
    except ValidationError as exc:
        raise ParseError(f"Reply did not match the questions schema: {exc}", raw_reply=raw) from exc
    if not parsed.questions:
        raise ParseError("Reply contained no questions.", raw_reply=raw)
    return parsed
