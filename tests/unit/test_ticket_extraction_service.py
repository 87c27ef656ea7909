from __future__ import annotations

import asyncio
import json

import pytest

from appeal_automation.application.services.ticket_extraction_service import (
    TicketExtractionError,
    TicketExtractionService,
    UnsupportedTicketMediaError,
)
from appeal_automation.infrastructure.llm.deterministic_client import DeterministicLlmClient
from appeal_automation.infrastructure.llm.llm_client import StaticLlmClient
from appeal_automation.infrastructure.llm.openai_client import OpenAiAdapterError

IMAGE = b"\x89PNG\r\n\x1a\nfake"


class RecordingVisionClient:
    def __init__(self, response_text: str, *, delay_seconds: float = 0.0) -> None:
        self._response_text = response_text
        self._delay_seconds = delay_seconds
        self.calls: list[tuple[bytes, str]] = []

    async def complete_with_image(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        image_bytes: bytes,
        media_type: str,
    ) -> str:
        self.calls.append((image_bytes, media_type))
        if self._delay_seconds:
            await asyncio.sleep(self._delay_seconds)
        return self._response_text


class FailingVisionClient:
    async def complete_with_image(self, **_: object) -> str:
        raise OpenAiAdapterError("vision model unavailable")


@pytest.mark.asyncio
async def test_extraction_returns_candidates_and_missing_required_fields() -> None:
    client = RecordingVisionClient(
        json.dumps(
            {
                "fields": {
                    "issuer_type": "private",
                    "pcn_number": "PC001",
                    "contravention_code": "30",
                    "location": "  ",
                },
                "confidence": {"pcn_number": 0.9},
            }
        )
    )
    service = TicketExtractionService(vision_client=client)

    extraction = await service.extract(image_bytes=IMAGE, media_type="image/PNG; charset=x")

    assert client.calls == [(IMAGE, "image/png")]
    assert extraction.fields.issuer_type == "private"
    assert extraction.confidence.pcn_number == 0.9
    assert extraction.confidence.location == 0.0
    assert extraction.missing_fields == ["vehicle_registration", "issue_datetime", "location"]
    assert extraction.contravention_explanation == "Parked for longer than permitted"


@pytest.mark.asyncio
async def test_deterministic_client_yields_complete_candidate() -> None:
    service = TicketExtractionService(vision_client=DeterministicLlmClient(stage="ocr"))

    extraction = await service.extract(image_bytes=IMAGE, media_type="image/jpeg")

    assert extraction.missing_fields == []
    assert extraction.fields.contravention_code == "06"


@pytest.mark.parametrize("media_type", [None, "application/pdf", "text/plain"])
@pytest.mark.asyncio
async def test_non_image_upload_is_rejected(media_type: str | None) -> None:
    service = TicketExtractionService(vision_client=StaticLlmClient("{}"))

    with pytest.raises(UnsupportedTicketMediaError):
        await service.extract(image_bytes=IMAGE, media_type=media_type)


@pytest.mark.asyncio
async def test_empty_image_is_rejected() -> None:
    service = TicketExtractionService(vision_client=StaticLlmClient("{}"))

    with pytest.raises(UnsupportedTicketMediaError):
        await service.extract(image_bytes=b"", media_type="image/png")


@pytest.mark.asyncio
async def test_timeout_is_reported_as_extraction_error() -> None:
    client = RecordingVisionClient("{}", delay_seconds=1.0)
    service = TicketExtractionService(vision_client=client, timeout_seconds=0.01)

    with pytest.raises(TicketExtractionError, match="timed out"):
        await service.extract(image_bytes=IMAGE, media_type="image/png")


@pytest.mark.asyncio
async def test_adapter_failure_is_reported_as_extraction_error() -> None:
    service = TicketExtractionService(vision_client=FailingVisionClient())

    with pytest.raises(TicketExtractionError) as exc_info:
        await service.extract(image_bytes=IMAGE, media_type="image/png")

    assert not isinstance(exc_info.value, UnsupportedTicketMediaError)


@pytest.mark.parametrize(
    "response_text",
    ["no json", json.dumps({"fields": {"issuer_type": "police"}}), json.dumps({"other": 1})],
)
@pytest.mark.asyncio
async def test_unusable_output_is_reported_as_extraction_error(response_text: str) -> None:
    service = TicketExtractionService(vision_client=StaticLlmClient(response_text))

    with pytest.raises(TicketExtractionError, match="unusable"):
        await service.extract(image_bytes=IMAGE, media_type="image/png")
