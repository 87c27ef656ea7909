from __future__ import annotations

from pathlib import Path
from typing import Any
from uuid import UUID

import pytest
from alembic.config import Config

from alembic import command
from appeal_automation.application.ports.appeal_repository_port import (
    PaymentApplyOutcome,
    PaymentConfirmationInput,
)
from appeal_automation.application.services.appeal_workflow_service import (
    AnalyzeOutcome,
    AppealWorkflowService,
)
from appeal_automation.application.services.letter_drafting_service import LetterDraftingService
from appeal_automation.domain.appeal_status import AppealStatus
from appeal_automation.domain.plans import PlanType
from appeal_automation.infrastructure.db.appeal_repository import SqlAlchemyAppealRepository
from appeal_automation.infrastructure.db.audit_repository import SqlAlchemyAuditRepository
from appeal_automation.infrastructure.db.job_queue_repository import SqlAlchemyJobQueueRepository
from appeal_automation.infrastructure.db.session import create_session_factory
from appeal_automation.infrastructure.db.worker_bootstrap import open_stale_payment_windows
from appeal_automation.infrastructure.llm.llm_client import StaticLlmClient

GRACE_FACTS: dict[str, Any] = {
    "issuer_type": "council",
    "contravention_code": "06",
    "issue_datetime": "2026-03-04T14:09:00",
    "paid": True,
    "paid_until": "14:00",
    "loading_unloading": False,
    "passenger_dropoff": False,
    "blue_badge": False,
    "medical_emergency": False,
    "signage_visible": True,
    "markings_visible": True,
    "no_observation_period": False,
    "late_council_reply": False,
}


class InterruptedPaymentWindowRepository(SqlAlchemyAppealRepository):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.interrupt_next_open = True

    async def open_payment_window_if_analyzed(self, *, case_id: UUID) -> bool:
        if self.interrupt_next_open:
            self.interrupt_next_open = False
            raise ConnectionError("connection lost before payment window opened")
        return await super().open_payment_window_if_analyzed(case_id=case_id)


def _upgrade_head(tmp_path: Path, filename: str) -> tuple[str, str]:
    db_path = tmp_path / filename
    sync_url = f"sqlite+pysqlite:///{db_path}"
    async_url = f"sqlite+aiosqlite:///{db_path}"

    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", sync_url)
    command.upgrade(alembic_config, "head")

    return sync_url, async_url


def _workflow(repository: SqlAlchemyAppealRepository, async_url: str) -> AppealWorkflowService:
    session_factory = create_session_factory(async_url)
    return AppealWorkflowService(
        appeal_repository=repository,
        audit_repository=SqlAlchemyAuditRepository(session_factory),
        job_queue=SqlAlchemyJobQueueRepository(session_factory),
        letter_generator=LetterDraftingService(
            analysis_client=StaticLlmClient("{}"),
            letter_client=StaticLlmClient("Dear Sir or Madam"),
        ),
    )


def _confirmation(case_id: UUID) -> PaymentConfirmationInput:
    return PaymentConfirmationInput(
        case_id=case_id,
        idempotency_key="cs_recovery",
        plan_type=PlanType.SINGLE,
        amount_minor=299,
        currency="gbp",
        event_type="checkout.session.completed",
    )


@pytest.mark.asyncio
async def test_retried_analysis_opens_payment_window_after_interruption(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "analysis_resume.db")
    repository = InterruptedPaymentWindowRepository(create_session_factory(async_url))
    workflow = _workflow(repository, async_url)
    case = await workflow.create_case(owner_user_id="user-1", facts=dict(GRACE_FACTS))

    with pytest.raises(ConnectionError):
        await workflow.analyze(case_id=case.case_id)
    stuck = await repository.get_appeal(case_id=case.case_id)

    retried = await workflow.analyze(case_id=case.case_id)
    paid = await workflow.confirm_payment(_confirmation(case.case_id))
    final = await repository.get_appeal(case_id=case.case_id)

    assert stuck is not None
    assert stuck.status == AppealStatus.ANALYZED
    assert retried.outcome is AnalyzeOutcome.ANALYZED
    assert retried.case is not None
    assert retried.case.status == AppealStatus.AWAITING_PAYMENT
    assert paid.outcome is PaymentApplyOutcome.APPLIED
    assert final is not None
    assert final.status == AppealStatus.PAID


@pytest.mark.asyncio
async def test_startup_opens_payment_window_for_cases_left_analyzed(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "analysis_startup.db")
    session_factory = create_session_factory(async_url)
    repository = InterruptedPaymentWindowRepository(session_factory)
    workflow = _workflow(repository, async_url)
    case = await workflow.create_case(owner_user_id="user-1", facts=dict(GRACE_FACTS))
    with pytest.raises(ConnectionError):
        await workflow.analyze(case_id=case.case_id)

    opened = await open_stale_payment_windows(session_factory)
    paid = await workflow.confirm_payment(_confirmation(case.case_id))

    assert opened == 1
    assert paid.outcome is PaymentApplyOutcome.APPLIED
