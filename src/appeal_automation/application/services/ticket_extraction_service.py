"""OCR collaborator: read candidate ticket fields from a photographed notice."""

from __future__ import annotations

import asyncio
import logging

from pydantic import ValidationError

from appeal_automation.application.dto.ticket_models import (
    REQUIRED_TICKET_FIELDS,
    TicketExtraction,
    TicketExtractionResponse,
)
from appeal_automation.application.services.llm_json_parser import (
    LlmJsonParseError,
    decode_llm_json_object,
)
from appeal_automation.domain.contravention_rules import explain
from appeal_automation.infrastructure.llm.llm_client import VisionLlmClientPort
from appeal_automation.infrastructure.llm.openai_client import OpenAiAdapterError

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are an OCR specialist for UK parking tickets. Extract the ticket information "
    "from the image and return ONLY a JSON object with two keys. `fields` holds "
    "issuer_type (council|private), issuer, pcn_number, vehicle_registration, "
    "vehicle_make, vehicle_model, vehicle_colour, contravention_code, "
    "contravention_description, issue_datetime (ISO 8601), location, observation_start, "
    "penalty_amount and additional_notes. `confidence` holds a score between 0.0 and 1.0 "
    "for issuer_type, issuer, pcn_number, vehicle_registration, contravention_code, "
    "issue_datetime and location. Words such as 'Parking Charge Notice', BPA or IPC "
    "indicate a private issuer. Use null for anything you cannot read."
)
_USER_PROMPT = "Extract all parking ticket information from this image."


class TicketExtractionError(RuntimeError):
    """The image was rejected or the OCR collaborator produced no usable result."""


class UnsupportedTicketMediaError(TicketExtractionError):
    """The upload is not an image."""


class TicketExtractionService:
    """Return unconfirmed ticket candidates; nothing here writes to a case."""

    def __init__(
        self,
        *,
        vision_client: VisionLlmClientPort,
        timeout_seconds: float = 45.0,
    ) -> None:
        self._vision_client = vision_client
        self._timeout_seconds = timeout_seconds

    async def extract(self, *, image_bytes: bytes, media_type: str | None) -> TicketExtraction:
        """Run OCR under a timeout and report which required fields came back empty."""

        normalized_type = (media_type or "").split(";")[0].strip().lower()
        if not normalized_type.startswith("image/"):
            raise UnsupportedTicketMediaError("file must be an image")
        if not image_bytes:
            raise UnsupportedTicketMediaError("image payload is empty")

        try:
            raw_response = await asyncio.wait_for(
                self._vision_client.complete_with_image(
                    system_prompt=_SYSTEM_PROMPT,
                    user_prompt=_USER_PROMPT,
                    image_bytes=image_bytes,
                    media_type=normalized_type,
                ),
                timeout=self._timeout_seconds,
            )
        except TimeoutError as error:
            raise TicketExtractionError(
                f"ticket extraction timed out after {self._timeout_seconds}s"
            ) from error
        except OpenAiAdapterError as error:
            raise TicketExtractionError(f"ticket extraction failed: {error}") from error

        try:
            response = TicketExtractionResponse.model_validate(
                decode_llm_json_object(raw_response)
            )
        except (LlmJsonParseError, ValidationError) as error:
            logger.warning("ticket_extraction_invalid_response error=%s", error)
            raise TicketExtractionError("ticket extraction returned unusable output") from error

        fields = response.fields
        missing_fields = [
            name for name in REQUIRED_TICKET_FIELDS if not (getattr(fields, name) or "").strip()
        ]
        logger.info(
            "ticket_extracted contravention_code=%s missing_fields=%s",
            fields.contravention_code,
            ",".join(missing_fields) or "-",
        )
        return TicketExtraction(
            fields=fields,
            confidence=response.confidence,
            missing_fields=missing_fields,
            contravention_explanation=(
                explain(fields.contravention_code) if fields.contravention_code else None
            ),
        )
