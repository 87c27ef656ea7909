"""Pydantic request and response models for the appeal HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from appeal_automation.application.ports.appeal_repository_port import AppealRecord


class StrictModel(BaseModel):
    """Base model with strict unknown-field rejection."""

    model_config = ConfigDict(extra="forbid")


class AppealFactsInput(StrictModel):
    """User-confirmed facts; drafts may be partial until analysis is requested."""

    issuer_type: Literal["council", "private"] | None = None
    contravention_code: str | None = None
    issue_datetime: str | None = None
    paid: bool | None = None
    paid_until: str | None = None
    payment_method: str | None = None
    permit_type: str | None = None
    loading_unloading: bool | None = None
    passenger_dropoff: bool | None = None
    blue_badge: bool | None = None
    medical_emergency: bool | None = None
    signage_visible: bool | None = None
    markings_visible: bool | None = None
    no_observation_period: bool | None = None
    late_council_reply: bool | None = None


class TicketDetailsInput(StrictModel):
    """Letter context read off the ticket that does not drive defence rules."""

    pcn_number: str | None = None
    issuer: str | None = None
    vehicle_registration: str | None = None
    vehicle_make: str | None = None
    vehicle_model: str | None = None
    vehicle_colour: str | None = None
    contravention_description: str | None = None
    location: str | None = None
    additional_notes: str | None = None


class CreateAppealRequest(StrictModel):
    owner_user_id: str = Field(min_length=1)
    facts: AppealFactsInput
    ticket: TicketDetailsInput = Field(default_factory=TicketDetailsInput)


class UpdateFactsRequest(StrictModel):
    facts: AppealFactsInput
    ticket: TicketDetailsInput | None = None
    expected_version: int | None = Field(default=None, ge=1)


class AppealResponse(StrictModel):
    case_id: UUID
    owner_user_id: str
    status: str
    version: int
    facts: dict[str, Any]
    ticket: dict[str, Any]
    contravention_category: str | None
    primary_defence: dict[str, Any] | None
    supporting_defences: list[dict[str, Any]] | None
    general_defences: list[str] | None
    plan_type: str | None
    paid_at: datetime | None
    letter_text: str | None
    letter_analysis: dict[str, Any] | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: AppealRecord) -> AppealResponse:
        return cls(
            case_id=record.case_id,
            owner_user_id=record.owner_user_id,
            status=record.status.value,
            version=record.version,
            facts=record.facts,
            ticket=record.ticket,
            contravention_category=record.contravention_category,
            primary_defence=record.primary_defence,
            supporting_defences=record.supporting_defences,
            general_defences=record.general_defences,
            plan_type=record.plan_type,
            paid_at=record.paid_at,
            letter_text=record.letter_text,
            letter_analysis=record.letter_analysis,
            completed_at=record.completed_at,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class AppealListResponse(StrictModel):
    items: list[AppealResponse]


class AnalysisResponse(StrictModel):
    case: AppealResponse
    contravention_category: str
    has_specific_defence: bool
    primary_defence: dict[str, Any] | None
    supporting_defences: list[dict[str, Any]]
    applicable_defences: list[dict[str, Any]]
    general_defences: list[str]


class ContraventionResponse(StrictModel):
    code: str
    known: bool
    category: str
    grace_period_eligible: bool
    observation_required: bool
    common_defences: list[str]
    explanation: str


class PlanResponse(StrictModel):
    plan_type: str
    amount_minor: int
    currency: str
    product_name: str
    description: str


class PlanListResponse(StrictModel):
    items: list[PlanResponse]


class LetterResponse(StrictModel):
    case_id: UUID
    outcome: str
    status: str | None
    letter_text: str | None


class PaymentCanceledResponse(StrictModel):
    case_id: UUID
    status: str
