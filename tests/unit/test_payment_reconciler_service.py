from __future__ import annotations

import json
from typing import Any
from uuid import uuid4

import pytest

from appeal_automation.application.ports.appeal_repository_port import (
    PaymentApplyOutcome,
    PaymentConfirmationInput,
)
from appeal_automation.application.services.appeal_workflow_service import (
    ConfirmPaymentResult,
)
from appeal_automation.application.services.payment_reconciler_service import (
    PaymentReconcilerService,
    ReconcileOutcome,
)
from appeal_automation.domain.appeal_status import AppealStatus
from appeal_automation.domain.plans import PlanType
from appeal_automation.infrastructure.http.hmac_auth import compute_hmac_sha256

SECRET = "whsec-test"


class FakeWorkflow:
    def __init__(self, outcome: PaymentApplyOutcome = PaymentApplyOutcome.APPLIED) -> None:
        self.outcome = outcome
        self.confirmations: list[PaymentConfirmationInput] = []

    async def confirm_payment(
        self,
        confirmation: PaymentConfirmationInput,
    ) -> ConfirmPaymentResult:
        self.confirmations.append(confirmation)
        return ConfirmPaymentResult(outcome=self.outcome, status=AppealStatus.PAID)


def _event(
    *,
    event_type: str = "checkout.session.completed",
    metadata: dict[str, str] | None = None,
    object_id: str = "cs_test_1",
    **object_fields: Any,
) -> bytes:
    payment_object: dict[str, Any] = {
        "id": object_id,
        "metadata": metadata if metadata is not None else {},
        **object_fields,
    }
    return json.dumps(
        {"id": "evt_1", "type": event_type, "data": {"object": payment_object}}
    ).encode("utf-8")


def _reconciler(workflow: FakeWorkflow) -> PaymentReconcilerService:
    return PaymentReconcilerService(
        webhook_secret=SECRET,
        workflow=workflow,  # type: ignore[arg-type]
    )


async def _deliver(reconciler: PaymentReconcilerService, body: bytes):
    return await reconciler.reconcile(
        raw_body=body,
        signature=compute_hmac_sha256(secret=SECRET, body=body),
    )


@pytest.mark.asyncio
async def test_valid_checkout_completion_is_applied() -> None:
    workflow = FakeWorkflow()
    case_id = uuid4()
    body = _event(
        metadata={"case_id": str(case_id), "plan_type": "annual"},
        amount_total=999,
        currency="GBP",
    )

    result = await _deliver(_reconciler(workflow), body)

    assert result.outcome is ReconcileOutcome.APPLIED
    assert result.case_id == case_id
    confirmation = workflow.confirmations[0]
    assert confirmation.idempotency_key == "cs_test_1"
    assert confirmation.plan_type is PlanType.ANNUAL
    assert confirmation.amount_minor == 999
    assert confirmation.currency == "gbp"
    assert confirmation.event_type == "checkout.session.completed"
    assert confirmation.provider_event_id == "evt_1"


@pytest.mark.asyncio
async def test_payment_intent_uses_appeal_id_alias_and_price_table_defaults() -> None:
    workflow = FakeWorkflow()
    case_id = uuid4()
    body = _event(
        event_type="payment_intent.succeeded",
        object_id="pi_123",
        metadata={"appeal_id": str(case_id), "plan_type": "single"},
    )

    result = await _deliver(_reconciler(workflow), body)

    assert result.outcome is ReconcileOutcome.APPLIED
    confirmation = workflow.confirmations[0]
    assert confirmation.case_id == case_id
    assert confirmation.idempotency_key == "pi_123"
    assert confirmation.amount_minor == 299
    assert confirmation.currency == "gbp"


@pytest.mark.asyncio
async def test_bad_signature_is_rejected_before_parsing() -> None:
    workflow = FakeWorkflow()
    body = _event(metadata={"case_id": str(uuid4()), "plan_type": "single"})

    result = await _reconciler(workflow).reconcile(raw_body=body, signature="deadbeef")

    assert result.outcome is ReconcileOutcome.UNAUTHENTICATED
    assert workflow.confirmations == []


@pytest.mark.asyncio
async def test_missing_signature_is_rejected() -> None:
    workflow = FakeWorkflow()

    result = await _reconciler(workflow).reconcile(raw_body=b"{}", signature=None)

    assert result.outcome is ReconcileOutcome.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_unrelated_event_type_is_acknowledged_and_ignored() -> None:
    workflow = FakeWorkflow()
    body = _event(event_type="customer.created")

    result = await _deliver(_reconciler(workflow), body)

    assert result.outcome is ReconcileOutcome.IGNORED_EVENT_TYPE
    assert workflow.confirmations == []


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        json.dumps({"type": "checkout.session.completed", "data": {}}).encode(),
        _event(metadata={"plan_type": "single"}),
        _event(metadata={"case_id": "not-a-uuid", "plan_type": "single"}),
        _event(metadata={"case_id": "7b0c0b3c-4c1e-4d59-9a3b-0a8f3b0b7e11"}),
        _event(
            metadata={
                "case_id": "7b0c0b3c-4c1e-4d59-9a3b-0a8f3b0b7e11",
                "plan_type": "monthly",
            }
        ),
    ],
)
@pytest.mark.asyncio
async def test_malformed_notifications_are_discarded(body: bytes) -> None:
    workflow = FakeWorkflow()

    result = await _deliver(_reconciler(workflow), body)

    assert result.outcome is ReconcileOutcome.DISCARDED_MALFORMED
    assert result.detail
    assert workflow.confirmations == []


@pytest.mark.parametrize(
    ("apply_outcome", "expected"),
    [
        (PaymentApplyOutcome.DUPLICATE, ReconcileOutcome.DUPLICATE),
        (PaymentApplyOutcome.ALREADY_PAID, ReconcileOutcome.ALREADY_PAID),
        (PaymentApplyOutcome.NOT_FOUND, ReconcileOutcome.NOT_FOUND),
        (PaymentApplyOutcome.WRONG_STATE, ReconcileOutcome.WRONG_STATE),
    ],
)
@pytest.mark.asyncio
async def test_apply_outcomes_map_to_reconcile_outcomes(
    apply_outcome: PaymentApplyOutcome,
    expected: ReconcileOutcome,
) -> None:
    workflow = FakeWorkflow(outcome=apply_outcome)
    body = _event(metadata={"case_id": str(uuid4()), "plan_type": "single"})

    result = await _deliver(_reconciler(workflow), body)

    assert result.outcome is expected
