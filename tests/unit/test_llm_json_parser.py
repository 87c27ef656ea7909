from __future__ import annotations

import pytest

from appeal_automation.application.services.llm_json_parser import (
    LlmJsonParseError,
    decode_llm_json_object,
)


@pytest.mark.parametrize(
    "raw",
    [
        '{"a": 1}',
        '```json\n{"a": 1}\n```',
        '```\n{"a": 1}\n```',
        'Here is the result:\n{"a": 1}\nThanks.',
    ],
)
def test_object_is_extracted_from_common_completion_shapes(raw: str) -> None:
    assert decode_llm_json_object(raw) == {"a": 1}


@pytest.mark.parametrize("raw", ["", "no json here", "[1, 2]", "{not json}"])
def test_non_object_completions_raise(raw: str) -> None:
    with pytest.raises(LlmJsonParseError):
        decode_llm_json_object(raw)
