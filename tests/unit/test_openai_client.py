from __future__ import annotations

import base64
import json

import pytest

from appeal_automation.application.dto.letter_models import LetterCaseAnalysis
from appeal_automation.infrastructure.llm.openai_client import (
    OpenAiAdapterError,
    OpenAiChatCompletionsClient,
    OpenAiHttpResponse,
)


class FakeTransport:
    def __init__(self, responses: list[OpenAiHttpResponse | Exception]) -> None:
        self._responses = responses
        self.calls: list[dict[str, object]] = []

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> OpenAiHttpResponse:
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers,
                "body": json.loads(body or b"{}"),
                "timeout_seconds": timeout_seconds,
            }
        )
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _ok(content: object) -> OpenAiHttpResponse:
    body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    return OpenAiHttpResponse(status_code=200, body_bytes=json.dumps(body).encode("utf-8"))


@pytest.mark.asyncio
async def test_complete_posts_chat_payload_and_returns_content() -> None:
    transport = FakeTransport([_ok("hello")])
    client = OpenAiChatCompletionsClient(
        api_key=" sk-test ",
        model="gpt-4o-mini",
        temperature=0.3,
        max_tokens=2000,
        transport=transport,
        timeout_seconds=12.0,
    )

    result = await client.complete(system_prompt="sys", user_prompt="user")

    assert result == "hello"
    call = transport.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://api.openai.com/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-test"  # type: ignore[index]
    assert call["timeout_seconds"] == 12.0
    assert call["body"] == {
        "model": "gpt-4o-mini",
        "messages": [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "user"},
        ],
        "temperature": 0.3,
        "max_tokens": 2000,
    }


@pytest.mark.asyncio
async def test_image_prompt_is_sent_as_data_url_in_json_mode() -> None:
    transport = FakeTransport([_ok([{"type": "text", "text": '{"fields": {}}'}])])
    client = OpenAiChatCompletionsClient(
        api_key="sk-test",
        model="gpt-4o-mini",
        json_output=True,
        transport=transport,
    )

    result = await client.complete_with_image(
        system_prompt="sys",
        user_prompt="read",
        image_bytes=b"img",
        media_type="image/png",
    )

    assert result == '{"fields": {}}'
    body = transport.calls[0]["body"]
    assert body["response_format"] == {"type": "json_object"}  # type: ignore[index]
    user_content = body["messages"][1]["content"]  # type: ignore[index]
    expected_url = "data:image/png;base64," + base64.b64encode(b"img").decode("ascii")
    assert user_content[1]["image_url"]["url"] == expected_url


@pytest.mark.asyncio
async def test_response_schema_is_normalized_for_strict_mode() -> None:
    transport = FakeTransport([_ok("{}")])
    client = OpenAiChatCompletionsClient(
        api_key="sk-test",
        model="gpt-4o-mini",
        response_schema_name="letter_case_analysis",
        response_schema=LetterCaseAnalysis.model_json_schema(),
        transport=transport,
    )

    await client.complete(system_prompt="sys", user_prompt="user")

    response_format = transport.calls[0]["body"]["response_format"]  # type: ignore[index]
    assert response_format["type"] == "json_schema"
    schema = response_format["json_schema"]["schema"]
    assert response_format["json_schema"]["strict"] is True
    assert schema["additionalProperties"] is False
    assert set(schema["required"]) == set(LetterCaseAnalysis.model_fields)


@pytest.mark.asyncio
async def test_gpt5_models_omit_custom_temperature() -> None:
    transport = FakeTransport([_ok("ok")])
    client = OpenAiChatCompletionsClient(
        api_key="sk-test",
        model="gpt-5-mini",
        temperature=0.5,
        transport=transport,
    )

    await client.complete(system_prompt="sys", user_prompt="user")

    assert "temperature" not in transport.calls[0]["body"]  # type: ignore[operator]


@pytest.mark.asyncio
async def test_non_success_status_raises_adapter_error() -> None:
    transport = FakeTransport(
        [OpenAiHttpResponse(status_code=429, body_bytes=b'{"error":"rate limited"}')]
    )
    client = OpenAiChatCompletionsClient(api_key="sk-test", model="m", transport=transport)

    with pytest.raises(OpenAiAdapterError, match="status 429"):
        await client.complete(system_prompt="sys", user_prompt="user")


@pytest.mark.asyncio
async def test_transport_exception_is_normalized() -> None:
    transport = FakeTransport([ConnectionResetError("reset")])
    client = OpenAiChatCompletionsClient(api_key="sk-test", model="m", transport=transport)

    with pytest.raises(OpenAiAdapterError, match="transport failure"):
        await client.complete(system_prompt="sys", user_prompt="user")


@pytest.mark.parametrize(
    "body_bytes",
    [b"not json", b"[]", b'{"choices": []}', b'{"choices": [{"message": {"content": 3}}]}'],
)
@pytest.mark.asyncio
async def test_malformed_success_payload_raises_adapter_error(body_bytes: bytes) -> None:
    transport = FakeTransport([OpenAiHttpResponse(status_code=200, body_bytes=body_bytes)])
    client = OpenAiChatCompletionsClient(api_key="sk-test", model="m", transport=transport)

    with pytest.raises(OpenAiAdapterError):
        await client.complete(system_prompt="sys", user_prompt="user")


@pytest.mark.asyncio
async def test_empty_image_is_rejected_without_request() -> None:
    transport = FakeTransport([])
    client = OpenAiChatCompletionsClient(api_key="sk-test", model="m", transport=transport)

    with pytest.raises(OpenAiAdapterError, match="empty"):
        await client.complete_with_image(
            system_prompt="sys",
            user_prompt="read",
            image_bytes=b"",
            media_type="image/png",
        )

    assert transport.calls == []


@pytest.mark.parametrize(
    "kwargs",
    [
        {"api_key": " ", "model": "m"},
        {"api_key": "k", "model": ""},
        {"api_key": "k", "model": "m", "temperature": 2.5},
        {"api_key": "k", "model": "m", "response_schema_name": "only-name"},
    ],
)
def test_invalid_constructor_arguments_raise(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        OpenAiChatCompletionsClient(**kwargs)  # type: ignore[arg-type]
