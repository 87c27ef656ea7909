"""Payment-gated appeal workflow: facts, analysis, payment and letter generation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any
from uuid import UUID, uuid4

from appeal_automation.application.ports.appeal_repository_port import (
    AppealAnalysisUpdateInput,
    AppealCreateInput,
    AppealFactsUpdateInput,
    AppealRecord,
    AppealRepositoryPort,
    PaymentApplyOutcome,
    PaymentConfirmationInput,
)
from appeal_automation.application.ports.audit_repository_port import (
    AuditEventCreateInput,
    AuditRepositoryPort,
)
from appeal_automation.application.ports.job_queue_port import (
    JOB_TYPE_GENERATE_LETTER,
    JobEnqueueInput,
    JobQueuePort,
)
from appeal_automation.application.ports.letter_generator_port import (
    LetterDraft,
    LetterDraftRequest,
    LetterGenerationError,
    LetterGeneratorPort,
)
from appeal_automation.domain.appeal_facts import IncompleteAppealFactsError, parse_appeal_facts
from appeal_automation.domain.appeal_status import AppealStatus
from appeal_automation.domain.defence_ranking import DefenceAnalysis, analyze_appeal
from appeal_automation.domain.transitions import assert_transition

logger = logging.getLogger(__name__)

_MAX_CAS_ATTEMPTS = 3


class UpdateFactsOutcome(StrEnum):
    UPDATED = "updated"
    NOT_FOUND = "not_found"
    WRONG_STATE = "wrong_state"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class UpdateFactsResult:
    outcome: UpdateFactsOutcome
    case: AppealRecord | None = None


class AnalyzeOutcome(StrEnum):
    """Outcomes of the draft -> analyzed -> awaiting_payment step."""

    ANALYZED = "analyzed"
    NOT_FOUND = "not_found"
    WRONG_STATE = "wrong_state"
    INCOMPLETE_FACTS = "incomplete_facts"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class AnalyzeResult:
    outcome: AnalyzeOutcome
    case: AppealRecord | None = None
    analysis: DefenceAnalysis | None = None
    missing_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConfirmPaymentResult:
    outcome: PaymentApplyOutcome
    status: AppealStatus | None = None


class GenerateLetterOutcome(StrEnum):
    """Outcomes of one letter generation attempt."""

    COMPLETED = "completed"
    ALREADY_COMPLETED = "already_completed"
    IN_PROGRESS = "in_progress"
    NOT_FOUND = "not_found"
    WRONG_STATE = "wrong_state"
    RETRYABLE_FAILURE = "retryable_failure"


@dataclass(frozen=True)
class GenerateLetterResult:
    outcome: GenerateLetterOutcome
    letter_text: str | None = None
    status: AppealStatus | None = None
    error: str | None = None


class PaymentCanceledOutcome(StrEnum):
    RECORDED = "recorded"
    NOT_FOUND = "not_found"
    WRONG_STATE = "wrong_state"


@dataclass(frozen=True)
class PaymentCanceledResult:
    outcome: PaymentCanceledOutcome
    status: AppealStatus | None = None


class AppealWorkflowService:
    """Drive one appeal case through its lifecycle using compare-and-set writes."""

    def __init__(
        self,
        *,
        appeal_repository: AppealRepositoryPort,
        audit_repository: AuditRepositoryPort,
        job_queue: JobQueuePort,
        letter_generator: LetterGeneratorPort,
        letter_timeout_seconds: float = 90.0,
        letter_job_max_attempts: int = 5,
    ) -> None:
        self._appeal_repository = appeal_repository
        self._audit_repository = audit_repository
        self._job_queue = job_queue
        self._letter_generator = letter_generator
        self._letter_timeout_seconds = letter_timeout_seconds
        self._letter_job_max_attempts = letter_job_max_attempts

    async def create_case(
        self,
        *,
        owner_user_id: str,
        facts: dict[str, Any],
        ticket: dict[str, Any] | None = None,
    ) -> AppealRecord:
        """Store user-confirmed facts as a new draft case."""

        case = await self._appeal_repository.create_appeal(
            AppealCreateInput(
                case_id=uuid4(),
                owner_user_id=owner_user_id,
                facts=facts,
                ticket=ticket or {},
            )
        )
        await self._audit(
            case_id=case.case_id,
            actor_type="user",
            actor_user_id=owner_user_id,
            event_type="APPEAL_CREATED",
        )
        logger.info("appeal_created case_id=%s owner_user_id=%s", case.case_id, owner_user_id)
        return case

    async def get_case(self, *, case_id: UUID) -> AppealRecord | None:
        return await self._appeal_repository.get_appeal(case_id=case_id)

    async def list_cases(self, *, owner_user_id: str) -> list[AppealRecord]:
        return await self._appeal_repository.list_appeals(owner_user_id=owner_user_id)

    async def update_facts(
        self,
        *,
        case_id: UUID,
        facts: dict[str, Any],
        ticket: dict[str, Any] | None = None,
        expected_version: int | None = None,
    ) -> UpdateFactsResult:
        """Replace draft facts; without an expected version the current one is used."""

        case = await self._appeal_repository.get_appeal(case_id=case_id)
        if case is None:
            return UpdateFactsResult(outcome=UpdateFactsOutcome.NOT_FOUND)
        if case.status != AppealStatus.DRAFT:
            return UpdateFactsResult(outcome=UpdateFactsOutcome.WRONG_STATE, case=case)

        updated = await self._appeal_repository.update_draft_facts(
            AppealFactsUpdateInput(
                case_id=case_id,
                expected_version=case.version if expected_version is None else expected_version,
                facts=facts,
                ticket=ticket,
            )
        )
        if not updated:
            logger.info(
                "appeal_facts_update_conflict case_id=%s expected_version=%s",
                case_id,
                expected_version,
            )
            return UpdateFactsResult(
                outcome=UpdateFactsOutcome.CONFLICT,
                case=await self._appeal_repository.get_appeal(case_id=case_id),
            )

        await self._audit(
            case_id=case_id,
            actor_type="user",
            actor_user_id=case.owner_user_id,
            event_type="APPEAL_FACTS_UPDATED",
        )
        return UpdateFactsResult(
            outcome=UpdateFactsOutcome.UPDATED,
            case=await self._appeal_repository.get_appeal(case_id=case_id),
        )

    async def analyze(self, *, case_id: UUID) -> AnalyzeResult:
        """Run defence analysis on a draft and open its payment window."""

        for attempt in range(1, _MAX_CAS_ATTEMPTS + 1):
            case = await self._appeal_repository.get_appeal(case_id=case_id)
            if case is None:
                return AnalyzeResult(outcome=AnalyzeOutcome.NOT_FOUND)
            if case.status == AppealStatus.ANALYZED:
                return await self._resume_payment_window(case)
            if case.status != AppealStatus.DRAFT:
                logger.info(
                    "appeal_analysis_ignored_wrong_state case_id=%s current_status=%s",
                    case_id,
                    case.status.value,
                )
                return AnalyzeResult(outcome=AnalyzeOutcome.WRONG_STATE, case=case)

            try:
                facts = parse_appeal_facts(case.facts)
            except IncompleteAppealFactsError as error:
                await self._audit(
                    case_id=case_id,
                    actor_type="system",
                    event_type="APPEAL_ANALYSIS_REFUSED_INCOMPLETE",
                    payload={"missing_fields": list(error.missing_fields)},
                )
                logger.info(
                    "appeal_analysis_incomplete case_id=%s missing_fields=%s",
                    case_id,
                    ",".join(error.missing_fields),
                )
                return AnalyzeResult(
                    outcome=AnalyzeOutcome.INCOMPLETE_FACTS,
                    case=case,
                    missing_fields=error.missing_fields,
                )

            analysis = analyze_appeal(facts)
            assert_transition(case.status, AppealStatus.ANALYZED)
            payload = analysis.to_payload()
            recorded = await self._appeal_repository.record_analysis_if_draft(
                AppealAnalysisUpdateInput(
                    case_id=case_id,
                    expected_version=case.version,
                    contravention_category=analysis.contravention_category,
                    primary_defence=payload["primary_defence"],
                    supporting_defences=payload["supporting_defences"],
                    general_defences=payload["general_defences"],
                )
            )
            if recorded:
                break
            logger.info("appeal_analysis_cas_lost case_id=%s attempt=%s", case_id, attempt)
        else:
            return AnalyzeResult(
                outcome=AnalyzeOutcome.CONFLICT,
                case=await self._appeal_repository.get_appeal(case_id=case_id),
            )

        await self._audit(
            case_id=case_id,
            actor_type="system",
            event_type="APPEAL_ANALYZED",
            payload={
                "contravention_category": analysis.contravention_category,
                "primary_defence": analysis.primary.id if analysis.primary else None,
                "supporting_defences": [defence.id for defence in analysis.supporting],
            },
        )

        await self._open_payment_window(case_id=case_id)
        logger.info(
            "appeal_analyzed case_id=%s category=%s primary_defence=%s",
            case_id,
            analysis.contravention_category,
            analysis.primary.id if analysis.primary else None,
        )
        return AnalyzeResult(
            outcome=AnalyzeOutcome.ANALYZED,
            case=await self._appeal_repository.get_appeal(case_id=case_id),
            analysis=analysis,
        )

    async def _resume_payment_window(self, case: AppealRecord) -> AnalyzeResult:
        """Finish an analysis whose payment window was never opened."""

        # Facts are frozen once analyzed, so the ranking recomputes identically.
        analysis = analyze_appeal(parse_appeal_facts(case.facts))
        await self._open_payment_window(case_id=case.case_id)
        logger.info("appeal_analysis_resumed case_id=%s", case.case_id)
        return AnalyzeResult(
            outcome=AnalyzeOutcome.ANALYZED,
            case=await self._appeal_repository.get_appeal(case_id=case.case_id),
            analysis=analysis,
        )

    async def _open_payment_window(self, *, case_id: UUID) -> None:
        assert_transition(AppealStatus.ANALYZED, AppealStatus.AWAITING_PAYMENT)
        if await self._appeal_repository.open_payment_window_if_analyzed(case_id=case_id):
            await self._audit(
                case_id=case_id,
                actor_type="system",
                event_type="APPEAL_AWAITING_PAYMENT",
            )

    async def confirm_payment(self, confirmation: PaymentConfirmationInput) -> ConfirmPaymentResult:
        """Apply a verified payment once and queue letter generation."""

        result = await self._appeal_repository.apply_payment_confirmation(confirmation)
        if result.outcome == PaymentApplyOutcome.NOT_FOUND:
            logger.info("payment_ignored_not_found case_id=%s", confirmation.case_id)
            return ConfirmPaymentResult(outcome=result.outcome)

        if result.outcome != PaymentApplyOutcome.APPLIED:
            await self._audit(
                case_id=confirmation.case_id,
                actor_type="payment_provider",
                event_type=f"PAYMENT_IGNORED_{result.outcome.value.upper()}",
                payload={
                    "idempotency_key": confirmation.idempotency_key,
                    "current_status": result.status.value if result.status else None,
                },
            )
            logger.info(
                "payment_ignored case_id=%s outcome=%s current_status=%s",
                confirmation.case_id,
                result.outcome.value,
                result.status.value if result.status else None,
            )
            return ConfirmPaymentResult(outcome=result.outcome, status=result.status)

        await self._audit(
            case_id=confirmation.case_id,
            actor_type="payment_provider",
            event_type="PAYMENT_APPLIED",
            payload={
                "idempotency_key": confirmation.idempotency_key,
                "plan_type": confirmation.plan_type.value,
                "amount_minor": confirmation.amount_minor,
                "currency": confirmation.currency,
            },
        )
        await self.enqueue_letter_generation(case_id=confirmation.case_id)
        logger.info(
            "payment_applied case_id=%s plan_type=%s",
            confirmation.case_id,
            confirmation.plan_type.value,
        )
        return ConfirmPaymentResult(outcome=result.outcome, status=result.status)

    async def enqueue_letter_generation(self, *, case_id: UUID) -> bool:
        """Queue a generate_letter job unless one is already queued or running."""

        if await self._job_queue.has_active_job(
            case_id=case_id,
            job_type=JOB_TYPE_GENERATE_LETTER,
        ):
            return False

        await self._job_queue.enqueue(
            JobEnqueueInput(
                case_id=case_id,
                job_type=JOB_TYPE_GENERATE_LETTER,
                max_attempts=self._letter_job_max_attempts,
            )
        )
        return True

    async def record_payment_canceled(self, *, case_id: UUID) -> PaymentCanceledResult:
        """Acknowledge an abandoned checkout; the case stays awaiting payment."""

        case = await self._appeal_repository.get_appeal(case_id=case_id)
        if case is None:
            return PaymentCanceledResult(outcome=PaymentCanceledOutcome.NOT_FOUND)
        if case.status != AppealStatus.AWAITING_PAYMENT:
            return PaymentCanceledResult(
                outcome=PaymentCanceledOutcome.WRONG_STATE,
                status=case.status,
            )

        await self._audit(
            case_id=case_id,
            actor_type="user",
            actor_user_id=case.owner_user_id,
            event_type="PAYMENT_CANCELED",
        )
        return PaymentCanceledResult(
            outcome=PaymentCanceledOutcome.RECORDED,
            status=AppealStatus.AWAITING_PAYMENT,
        )

    async def generate_letter(self, *, case_id: UUID) -> GenerateLetterResult:
        """Claim a paid case, draft its letter and complete it, or release it back to paid."""

        case = await self._appeal_repository.get_appeal(case_id=case_id)
        if case is None:
            return GenerateLetterResult(outcome=GenerateLetterOutcome.NOT_FOUND)
        if case.status == AppealStatus.COMPLETED:
            return _already_completed(case)
        if case.status == AppealStatus.GENERATING:
            return GenerateLetterResult(
                outcome=GenerateLetterOutcome.IN_PROGRESS,
                status=case.status,
            )
        if case.status != AppealStatus.PAID:
            return GenerateLetterResult(
                outcome=GenerateLetterOutcome.WRONG_STATE,
                status=case.status,
            )

        assert_transition(case.status, AppealStatus.GENERATING)
        if not await self._appeal_repository.claim_generation_if_paid(case_id=case_id):
            latest = await self._appeal_repository.get_appeal(case_id=case_id)
            if latest is not None and latest.status == AppealStatus.COMPLETED:
                return _already_completed(latest)
            logger.info("letter_generation_claim_lost case_id=%s", case_id)
            return GenerateLetterResult(
                outcome=GenerateLetterOutcome.IN_PROGRESS,
                status=latest.status if latest else None,
            )

        await self._audit(
            case_id=case_id,
            actor_type="system",
            event_type="LETTER_GENERATION_STARTED",
        )
        logger.info("letter_generation_started case_id=%s", case_id)

        try:
            draft: LetterDraft = await asyncio.wait_for(
                self._letter_generator.generate(_build_draft_request(case)),
                timeout=self._letter_timeout_seconds,
            )
        except TimeoutError:
            return await self._fail_generation(
                case_id=case_id,
                reason=f"letter generation timed out after {self._letter_timeout_seconds}s",
            )
        except LetterGenerationError as error:
            return await self._fail_generation(
                case_id=case_id,
                reason=str(error) or "letter generation failed",
            )
        except Exception:
            await self._release(case_id=case_id, reason="unexpected collaborator error")
            raise

        if not draft.letter_text.strip():
            return await self._fail_generation(
                case_id=case_id,
                reason="letter generator returned an empty letter",
            )

        assert_transition(AppealStatus.GENERATING, AppealStatus.COMPLETED)
        completed = await self._appeal_repository.complete_generation_if_generating(
            case_id=case_id,
            letter_text=draft.letter_text,
            letter_analysis=draft.analysis,
        )
        if not completed:
            logger.warning("letter_generation_lost_claim case_id=%s", case_id)
            return GenerateLetterResult(
                outcome=GenerateLetterOutcome.RETRYABLE_FAILURE,
                error="generation claim was released before completion",
            )

        await self._audit(
            case_id=case_id,
            actor_type="system",
            event_type="LETTER_COMPLETED",
            payload={"letter_length": len(draft.letter_text)},
        )
        logger.info("letter_generation_completed case_id=%s", case_id)
        return GenerateLetterResult(
            outcome=GenerateLetterOutcome.COMPLETED,
            letter_text=draft.letter_text,
            status=AppealStatus.COMPLETED,
        )

    async def _fail_generation(self, *, case_id: UUID, reason: str) -> GenerateLetterResult:
        await self._release(case_id=case_id, reason=reason)
        return GenerateLetterResult(
            outcome=GenerateLetterOutcome.RETRYABLE_FAILURE,
            status=AppealStatus.PAID,
            error=reason,
        )

    async def _release(self, *, case_id: UUID, reason: str) -> None:
        assert_transition(AppealStatus.GENERATING, AppealStatus.PAID)
        released = await self._appeal_repository.release_generation_if_generating(
            case_id=case_id
        )
        await self._audit(
            case_id=case_id,
            actor_type="system",
            event_type="LETTER_GENERATION_FAILED",
            payload={"error_summary": reason, "released": released},
        )
        logger.warning(
            "letter_generation_failed case_id=%s released=%s error=%s",
            case_id,
            released,
            reason,
        )

    async def _audit(
        self,
        *,
        case_id: UUID,
        actor_type: str,
        event_type: str,
        payload: dict[str, Any] | None = None,
        actor_user_id: str | None = None,
    ) -> None:
        await self._audit_repository.append_event(
            AuditEventCreateInput(
                case_id=case_id,
                actor_type=actor_type,
                actor_user_id=actor_user_id,
                event_type=event_type,
                payload=payload or {},
            )
        )


def _already_completed(case: AppealRecord) -> GenerateLetterResult:
    return GenerateLetterResult(
        outcome=GenerateLetterOutcome.ALREADY_COMPLETED,
        letter_text=case.letter_text,
        status=case.status,
    )


def _build_draft_request(case: AppealRecord) -> LetterDraftRequest:
    return LetterDraftRequest(
        case_id=case.case_id,
        facts=case.facts,
        ticket=case.ticket,
        contravention_category=case.contravention_category,
        primary_defence=case.primary_defence,
        supporting_defences=case.supporting_defences or [],
        general_defences=case.general_defences or [],
    )
