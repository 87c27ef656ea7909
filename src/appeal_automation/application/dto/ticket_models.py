"""Pydantic models for OCR ticket extraction candidates."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

REQUIRED_TICKET_FIELDS: tuple[str, ...] = (
    "issuer_type",
    "pcn_number",
    "vehicle_registration",
    "contravention_code",
    "issue_datetime",
    "location",
)


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TicketFieldConfidence(StrictModel):
    issuer_type: float = Field(default=0.0, ge=0.0, le=1.0)
    issuer: float = Field(default=0.0, ge=0.0, le=1.0)
    pcn_number: float = Field(default=0.0, ge=0.0, le=1.0)
    vehicle_registration: float = Field(default=0.0, ge=0.0, le=1.0)
    contravention_code: float = Field(default=0.0, ge=0.0, le=1.0)
    issue_datetime: float = Field(default=0.0, ge=0.0, le=1.0)
    location: float = Field(default=0.0, ge=0.0, le=1.0)


class TicketFields(StrictModel):
    """Candidate values read off the ticket image; every field may be absent."""

    issuer_type: Literal["council", "private"] | None = None
    issuer: str | None = None
    pcn_number: str | None = None
    vehicle_registration: str | None = None
    vehicle_make: str | None = None
    vehicle_model: str | None = None
    vehicle_colour: str | None = None
    contravention_code: str | None = None
    contravention_description: str | None = None
    issue_datetime: str | None = None
    location: str | None = None
    observation_start: str | None = None
    penalty_amount: str | None = None
    additional_notes: str | None = None


class TicketExtractionResponse(StrictModel):
    """Collaborator output: fields plus per-field confidence in [0, 1]."""

    fields: TicketFields
    confidence: TicketFieldConfidence = Field(default_factory=TicketFieldConfidence)


class TicketExtraction(StrictModel):
    """Unconfirmed OCR candidate returned to the user for review."""

    fields: TicketFields
    confidence: TicketFieldConfidence
    missing_fields: list[str]
    contravention_explanation: str | None = None
