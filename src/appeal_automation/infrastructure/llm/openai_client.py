"""OpenAI chat-completions adapter for letter drafting and ticket OCR."""

from __future__ import annotations

import asyncio
import base64
import copy
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, cast
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen


@dataclass(frozen=True)
class OpenAiHttpResponse:
    """Normalized HTTP response data returned by OpenAI transports."""

    status_code: int
    body_bytes: bytes


class OpenAiHttpTransportPort(Protocol):
    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> OpenAiHttpResponse:
        """Execute one HTTP request and return normalized response data."""


class OpenAiAdapterError(RuntimeError):
    """Raised for normalized OpenAI adapter failures."""


class UrllibOpenAiHttpTransport:
    """urllib-based async transport; blocking calls run in a worker thread."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> OpenAiHttpResponse:
        return await asyncio.to_thread(
            self._request_sync,
            method=method,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=timeout_seconds,
        )

    def _request_sync(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> OpenAiHttpResponse:
        request = Request(url=url, data=body, headers=headers, method=method)
        try:
            with urlopen(request, timeout=timeout_seconds) as response:
                return OpenAiHttpResponse(
                    status_code=int(response.getcode()),
                    body_bytes=response.read(),
                )
        except HTTPError as error:
            return OpenAiHttpResponse(status_code=int(error.code), body_bytes=error.read())
        except URLError as error:
            raise OpenAiAdapterError(f"transport connection failure: {error}") from error


class OpenAiChatCompletionsClient:
    """OpenAI `/v1/chat/completions` adapter for text and image prompts."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        temperature: float | None = None,
        json_output: bool = False,
        response_schema_name: str | None = None,
        response_schema: dict[str, object] | None = None,
        max_tokens: int | None = None,
        transport: OpenAiHttpTransportPort | None = None,
        timeout_seconds: float = 60.0,
        base_url: str = "https://api.openai.com",
    ) -> None:
        api_key_value = api_key.strip()
        model_value = model.strip()
        if not api_key_value:
            raise ValueError("api_key must be a non-empty string")
        if not model_value:
            raise ValueError("model must be a non-empty string")
        if temperature is not None and not (0.0 <= temperature <= 2.0):
            raise ValueError("temperature must be between 0.0 and 2.0")
        if (response_schema_name is None) != (response_schema is None):
            raise ValueError(
                "response_schema_name and response_schema must be provided together"
            )

        self._api_key = api_key_value
        self._model = model_value
        self._temperature = temperature
        self._json_output = json_output or response_schema is not None
        self._response_schema_name = response_schema_name
        self._response_schema = response_schema
        self._max_tokens = max_tokens
        self._transport = transport or UrllibOpenAiHttpTransport()
        self._timeout_seconds = timeout_seconds
        self._base_url = base_url.rstrip("/")

    @property
    def model_name(self) -> str:
        return self._model

    async def complete(self, *, system_prompt: str, user_prompt: str) -> str:
        """Return assistant text for a system + user text prompt."""

        return await self._chat(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ]
        )

    async def complete_with_image(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        image_bytes: bytes,
        media_type: str,
    ) -> str:
        """Return assistant text for a prompt with the image inlined as a data URL."""

        if not image_bytes:
            raise OpenAiAdapterError("image payload is empty")
        encoded = base64.b64encode(image_bytes).decode("ascii")
        return await self._chat(
            messages=[
                {"role": "system", "content": system_prompt},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": user_prompt},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{media_type};base64,{encoded}"},
                        },
                    ],
                },
            ]
        )

    async def _chat(self, *, messages: list[dict[str, Any]]) -> str:
        payload: dict[str, object] = {
            "model": self._model,
            "messages": messages,
        }
        if self._response_schema_name is not None and self._response_schema is not None:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": self._response_schema_name,
                    "schema": _normalize_openai_strict_schema(self._response_schema),
                    "strict": True,
                },
            }
        elif self._json_output:
            payload["response_format"] = {"type": "json_object"}
        if self._temperature is not None and self._supports_custom_temperature():
            payload["temperature"] = self._temperature
        if self._max_tokens is not None:
            payload["max_tokens"] = self._max_tokens

        response = await self._request_json(
            operation="chat_completions",
            path="/v1/chat/completions",
            payload=payload,
        )
        return _extract_assistant_content(response=response)

    def _supports_custom_temperature(self) -> bool:
        return not self._model.lower().startswith("gpt-5")

    async def _request_json(
        self,
        *,
        operation: str,
        path: str,
        payload: dict[str, object],
    ) -> dict[str, object]:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = await self._transport.request(
                method="POST",
                url=f"{self._base_url}{path}",
                headers=headers,
                body=body,
                timeout_seconds=self._timeout_seconds,
            )
        except OpenAiAdapterError:
            raise
        except Exception as error:  # noqa: BLE001
            raise OpenAiAdapterError(f"{operation} transport failure") from error

        if response.status_code < 200 or response.status_code >= 300:
            details = _decode_error_payload(response.body_bytes)
            raise OpenAiAdapterError(
                f"{operation} failed with status {response.status_code}: {details}"
            )

        try:
            decoded = json.loads(response.body_bytes.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as error:
            raise OpenAiAdapterError(f"{operation} returned invalid JSON payload") from error
        if not isinstance(decoded, dict):
            raise OpenAiAdapterError(f"{operation} returned non-object JSON payload")
        return cast("dict[str, object]", decoded)


def _extract_assistant_content(*, response: Mapping[str, Any]) -> str:
    choices = response.get("choices")
    if not isinstance(choices, list) or not choices:
        raise OpenAiAdapterError("chat_completions response missing choices")

    first_choice = choices[0]
    if not isinstance(first_choice, Mapping):
        raise OpenAiAdapterError("chat_completions response has invalid choices payload")

    message = first_choice.get("message")
    if not isinstance(message, Mapping):
        raise OpenAiAdapterError("chat_completions response missing message payload")

    content = message.get("content")
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        text_parts = [
            part["text"]
            for part in content
            if isinstance(part, Mapping)
            and part.get("type") == "text"
            and isinstance(part.get("text"), str)
        ]
        if text_parts:
            return "".join(text_parts)

    raise OpenAiAdapterError("chat_completions response missing assistant content")


def _decode_error_payload(payload: bytes) -> str:
    if not payload:
        return "empty response body"
    try:
        decoded = payload.decode("utf-8")
    except UnicodeDecodeError:
        return "<binary>"
    return decoded[:200]


def _normalize_openai_strict_schema(schema: dict[str, object]) -> dict[str, object]:
    """Mark every object property required and closed, as strict mode demands."""

    normalized = copy.deepcopy(schema)
    _normalize_schema_node(normalized)
    return normalized


def _normalize_schema_node(node: object) -> None:
    if isinstance(node, dict):
        properties = node.get("properties")
        if node.get("type") == "object" and isinstance(properties, dict):
            node["required"] = [str(name) for name in properties]
            node.setdefault("additionalProperties", False)

        for value in node.values():
            _normalize_schema_node(value)
        return

    if isinstance(node, list):
        for value in node:
            _normalize_schema_node(value)
