"""Verify and apply at-least-once payment provider notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

from pydantic import ValidationError

from appeal_automation.application.dto.payment_models import (
    PAYMENT_SUCCESS_EVENT_TYPES,
    PaymentEventEnvelope,
    PaymentObject,
)
from appeal_automation.application.ports.appeal_repository_port import (
    PaymentApplyOutcome,
    PaymentConfirmationInput,
)
from appeal_automation.application.services.appeal_workflow_service import AppealWorkflowService
from appeal_automation.domain.plans import UnknownPlanTypeError, parse_plan_type, price_for
from appeal_automation.infrastructure.http.hmac_auth import verify_hmac_signature

logger = logging.getLogger(__name__)


class ReconcileOutcome(StrEnum):
    """Outcomes of one notification delivery."""

    UNAUTHENTICATED = "unauthenticated"
    IGNORED_EVENT_TYPE = "ignored_event_type"
    DISCARDED_MALFORMED = "discarded_malformed"
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    ALREADY_PAID = "already_paid"
    NOT_FOUND = "not_found"
    WRONG_STATE = "wrong_state"


_APPLY_OUTCOMES: dict[PaymentApplyOutcome, ReconcileOutcome] = {
    PaymentApplyOutcome.APPLIED: ReconcileOutcome.APPLIED,
    PaymentApplyOutcome.DUPLICATE: ReconcileOutcome.DUPLICATE,
    PaymentApplyOutcome.ALREADY_PAID: ReconcileOutcome.ALREADY_PAID,
    PaymentApplyOutcome.NOT_FOUND: ReconcileOutcome.NOT_FOUND,
    PaymentApplyOutcome.WRONG_STATE: ReconcileOutcome.WRONG_STATE,
}


@dataclass(frozen=True)
class ReconcileResult:
    outcome: ReconcileOutcome
    case_id: UUID | None = None
    detail: str | None = None


class _MalformedNotificationError(ValueError):
    pass


class PaymentReconcilerService:
    """Authenticate, parse and apply payment notifications through the workflow."""

    def __init__(self, *, webhook_secret: str, workflow: AppealWorkflowService) -> None:
        self._webhook_secret = webhook_secret
        self._workflow = workflow

    async def reconcile(self, *, raw_body: bytes, signature: str | None) -> ReconcileResult:
        """Apply one delivery; replays and out-of-order deliveries are safe."""

        if not verify_hmac_signature(
            secret=self._webhook_secret,
            body=raw_body,
            provided_signature=signature,
        ):
            logger.warning("payment_reconcile_unauthenticated body_bytes=%s", len(raw_body))
            return ReconcileResult(outcome=ReconcileOutcome.UNAUTHENTICATED)

        try:
            envelope = PaymentEventEnvelope.model_validate_json(raw_body)
        except ValidationError as error:
            logger.warning(
                "payment_reconcile_discarded reason=invalid_envelope errors=%s",
                error.error_count(),
            )
            return ReconcileResult(
                outcome=ReconcileOutcome.DISCARDED_MALFORMED,
                detail="invalid notification envelope",
            )

        if envelope.type not in PAYMENT_SUCCESS_EVENT_TYPES:
            logger.info(
                "payment_reconcile_ignored event_id=%s event_type=%s",
                envelope.id,
                envelope.type,
            )
            return ReconcileResult(outcome=ReconcileOutcome.IGNORED_EVENT_TYPE)

        try:
            confirmation = _build_confirmation(envelope)
        except _MalformedNotificationError as error:
            logger.warning(
                "payment_reconcile_discarded event_id=%s event_type=%s reason=%s",
                envelope.id,
                envelope.type,
                error,
            )
            return ReconcileResult(
                outcome=ReconcileOutcome.DISCARDED_MALFORMED,
                detail=str(error),
            )

        result = await self._workflow.confirm_payment(confirmation)
        outcome = _APPLY_OUTCOMES[result.outcome]
        logger.info(
            "payment_reconcile_%s case_id=%s event_id=%s idempotency_key=%s",
            outcome.value,
            confirmation.case_id,
            envelope.id,
            confirmation.idempotency_key,
        )
        return ReconcileResult(outcome=outcome, case_id=confirmation.case_id)


def _build_confirmation(envelope: PaymentEventEnvelope) -> PaymentConfirmationInput:
    try:
        payment = PaymentObject.model_validate(envelope.data.get("object"))
    except ValidationError as error:
        raise _MalformedNotificationError("missing or invalid payment object") from error

    raw_case_id = payment.metadata_value("case_id", "appeal_id")
    if raw_case_id is None:
        raise _MalformedNotificationError("metadata.case_id missing")
    try:
        case_id = UUID(raw_case_id)
    except ValueError as error:
        raise _MalformedNotificationError("metadata.case_id is not a UUID") from error

    raw_plan_type = payment.metadata_value("plan_type")
    if raw_plan_type is None:
        raise _MalformedNotificationError("metadata.plan_type missing")
    try:
        plan_type = parse_plan_type(raw_plan_type)
    except UnknownPlanTypeError as error:
        raise _MalformedNotificationError(str(error)) from error

    price = price_for(plan_type)
    amount_minor = payment.amount_minor
    return PaymentConfirmationInput(
        case_id=case_id,
        idempotency_key=payment.id,
        plan_type=plan_type,
        amount_minor=price.amount_minor if amount_minor is None else amount_minor,
        currency=(payment.currency or price.currency).lower(),
        event_type=envelope.type,
        provider_event_id=envelope.id,
    )
