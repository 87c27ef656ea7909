"""Port for appeal case persistence operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Protocol
from uuid import UUID

from appeal_automation.domain.appeal_status import AppealStatus
from appeal_automation.domain.plans import PlanType


@dataclass(frozen=True)
class AppealCreateInput:
    """Input payload for creating a draft appeal row."""

    case_id: UUID
    owner_user_id: str
    facts: dict[str, Any]
    ticket: dict[str, Any]


@dataclass(frozen=True)
class AppealRecord:
    """Appeal persistence model used across repository boundaries."""

    case_id: UUID
    owner_user_id: str
    status: AppealStatus
    version: int
    facts: dict[str, Any]
    ticket: dict[str, Any]
    created_at: datetime
    updated_at: datetime
    contravention_category: str | None = None
    primary_defence: dict[str, Any] | None = None
    supporting_defences: list[dict[str, Any]] | None = None
    general_defences: list[str] | None = None
    plan_type: str | None = None
    payment_reference: str | None = None
    paid_at: datetime | None = None
    letter_text: str | None = None
    letter_analysis: dict[str, Any] | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class AppealFactsUpdateInput:
    """Draft fact replacement guarded by the case version."""

    case_id: UUID
    expected_version: int
    facts: dict[str, Any]
    ticket: dict[str, Any] | None = None


@dataclass(frozen=True)
class AppealAnalysisUpdateInput:
    """Ranked defence write payload for the draft -> analyzed compare-and-set."""

    case_id: UUID
    expected_version: int
    contravention_category: str
    primary_defence: dict[str, Any] | None
    supporting_defences: list[dict[str, Any]]
    general_defences: list[str]


@dataclass(frozen=True)
class PaymentConfirmationInput:
    """Verified payment notification applied atomically with its idempotency key."""

    case_id: UUID
    idempotency_key: str
    plan_type: PlanType
    amount_minor: int
    currency: str
    event_type: str
    provider_event_id: str | None = None


class PaymentApplyOutcome(StrEnum):
    """Outcomes of the atomic payment confirmation write."""

    APPLIED = "applied"
    DUPLICATE = "duplicate"
    ALREADY_PAID = "already_paid"
    NOT_FOUND = "not_found"
    WRONG_STATE = "wrong_state"


@dataclass(frozen=True)
class PaymentApplyResult:
    outcome: PaymentApplyOutcome
    status: AppealStatus | None = None
    owner_user_id: str | None = None


@dataclass(frozen=True)
class CustomerAccountRecord:
    """Plan and usage bookkeeping for one customer."""

    user_id: str
    plan_type: str | None
    plan_expires_at: datetime | None
    appeals_used: int


class AppealRepositoryPort(Protocol):
    """Async appeal repository contract; every status write is a compare-and-set."""

    async def create_appeal(self, payload: AppealCreateInput) -> AppealRecord:
        """Insert a draft appeal and return the persisted record."""

    async def get_appeal(self, *, case_id: UUID) -> AppealRecord | None:
        """Return one appeal by case id when present."""

    async def list_appeals(self, *, owner_user_id: str) -> list[AppealRecord]:
        """Return a customer's appeals, newest first."""

    async def update_draft_facts(self, payload: AppealFactsUpdateInput) -> bool:
        """Replace facts only while the case is draft at the expected version."""

    async def record_analysis_if_draft(self, payload: AppealAnalysisUpdateInput) -> bool:
        """Store ranked defences and move draft -> analyzed at the expected version."""

    async def open_payment_window_if_analyzed(self, *, case_id: UUID) -> bool:
        """Move analyzed -> awaiting_payment."""

    async def apply_payment_confirmation(
        self,
        payload: PaymentConfirmationInput,
    ) -> PaymentApplyResult:
        """Record the key, update plan bookkeeping and move awaiting_payment -> paid."""

    async def claim_generation_if_paid(self, *, case_id: UUID) -> bool:
        """Move paid -> generating; exactly one concurrent caller wins."""

    async def complete_generation_if_generating(
        self,
        *,
        case_id: UUID,
        letter_text: str,
        letter_analysis: dict[str, Any] | None,
    ) -> bool:
        """Store the letter and move generating -> completed."""

    async def release_generation_if_generating(self, *, case_id: UUID) -> bool:
        """Move generating -> paid after a failed generation attempt."""

    async def get_customer_account(self, *, user_id: str) -> CustomerAccountRecord | None:
        """Return plan bookkeeping for a customer when present."""
