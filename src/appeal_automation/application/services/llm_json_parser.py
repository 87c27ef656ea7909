"""Decode JSON objects from LLM completions that may wrap them in prose or fences."""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class LlmJsonParseError(ValueError):
    """Raised when a completion does not contain a JSON object."""


def decode_llm_json_object(raw_response: str) -> dict[str, Any]:
    """Return the first JSON object found in a completion."""

    text = raw_response.strip()
    fenced = _FENCE_PATTERN.match(text)
    if fenced is not None:
        text = fenced.group(1)

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise LlmJsonParseError("completion does not contain a JSON object")

    try:
        decoded = json.loads(text[start : end + 1])
    except json.JSONDecodeError as error:
        raise LlmJsonParseError(f"completion JSON is invalid: {error.msg}") from error

    if not isinstance(decoded, dict):
        raise LlmJsonParseError("completion JSON is not an object")
    return decoded
