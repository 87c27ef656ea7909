"""FastAPI router for ticket extraction, appeal cases and plan pricing."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Header, HTTPException, Query, Request, Response

from appeal_automation.application.dto.appeal_models import (
    AnalysisResponse,
    AppealListResponse,
    AppealResponse,
    ContraventionResponse,
    CreateAppealRequest,
    LetterResponse,
    PaymentCanceledResponse,
    PlanListResponse,
    PlanResponse,
    UpdateFactsRequest,
)
from appeal_automation.application.dto.ticket_models import TicketExtraction
from appeal_automation.application.services.appeal_workflow_service import (
    AnalyzeOutcome,
    AppealWorkflowService,
    GenerateLetterOutcome,
    PaymentCanceledOutcome,
    UpdateFactsOutcome,
)
from appeal_automation.application.services.ticket_extraction_service import (
    TicketExtractionError,
    TicketExtractionService,
    UnsupportedTicketMediaError,
)
from appeal_automation.domain.contravention_rules import UNKNOWN_CATEGORY, explain, lookup
from appeal_automation.domain.plans import all_prices

_CASE_NOT_FOUND = "case not found"


def build_appeal_router(
    *,
    workflow_service: AppealWorkflowService,
    ticket_extraction_service: TicketExtractionService,
) -> APIRouter:
    """Build router exposing the customer-facing appeal endpoints."""

    router = APIRouter(tags=["appeals"])

    @router.post("/tickets/extract", response_model=TicketExtraction)
    async def extract_ticket(
        request: Request,
        content_type: Annotated[str | None, Header()] = None,
    ) -> TicketExtraction:
        image_bytes = await request.body()
        try:
            return await ticket_extraction_service.extract(
                image_bytes=image_bytes,
                media_type=content_type,
            )
        except UnsupportedTicketMediaError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except TicketExtractionError as exc:
            raise HTTPException(status_code=503, detail=f"{exc}; try again") from exc

    @router.get("/contraventions/{code}", response_model=ContraventionResponse)
    async def get_contravention(code: str) -> ContraventionResponse:
        rule = lookup(code)
        return ContraventionResponse(
            code=rule.code,
            known=rule.category != UNKNOWN_CATEGORY,
            category=rule.category,
            grace_period_eligible=rule.grace_period_eligible,
            observation_required=rule.observation_required,
            common_defences=sorted(rule.common_defences),
            explanation=explain(code),
        )

    @router.get("/plans", response_model=PlanListResponse)
    async def list_plans() -> PlanListResponse:
        return PlanListResponse(
            items=[
                PlanResponse(
                    plan_type=price.plan_type.value,
                    amount_minor=price.amount_minor,
                    currency=price.currency,
                    product_name=price.product_name,
                    description=price.description,
                )
                for price in all_prices()
            ]
        )

    @router.post("/appeals", response_model=AppealResponse, status_code=201)
    async def create_appeal(payload: CreateAppealRequest) -> AppealResponse:
        case = await workflow_service.create_case(
            owner_user_id=payload.owner_user_id,
            facts=payload.facts.model_dump(mode="json"),
            ticket=payload.ticket.model_dump(mode="json"),
        )
        return AppealResponse.from_record(case)

    @router.get("/appeals", response_model=AppealListResponse)
    async def list_appeals(
        owner_user_id: Annotated[str, Query(min_length=1)],
    ) -> AppealListResponse:
        cases = await workflow_service.list_cases(owner_user_id=owner_user_id)
        return AppealListResponse(items=[AppealResponse.from_record(case) for case in cases])

    @router.get("/appeals/{case_id}", response_model=AppealResponse)
    async def get_appeal(case_id: UUID) -> AppealResponse:
        case = await workflow_service.get_case(case_id=case_id)
        if case is None:
            raise HTTPException(status_code=404, detail=_CASE_NOT_FOUND)
        return AppealResponse.from_record(case)

    @router.put("/appeals/{case_id}/facts", response_model=AppealResponse)
    async def update_facts(case_id: UUID, payload: UpdateFactsRequest) -> AppealResponse:
        result = await workflow_service.update_facts(
            case_id=case_id,
            facts=payload.facts.model_dump(mode="json"),
            ticket=payload.ticket.model_dump(mode="json") if payload.ticket else None,
            expected_version=payload.expected_version,
        )
        if result.outcome is UpdateFactsOutcome.NOT_FOUND:
            raise HTTPException(status_code=404, detail=_CASE_NOT_FOUND)
        if result.outcome is UpdateFactsOutcome.WRONG_STATE:
            raise HTTPException(status_code=409, detail="case is no longer a draft")
        if result.outcome is UpdateFactsOutcome.CONFLICT:
            raise HTTPException(status_code=409, detail="case changed concurrently; reload")
        assert result.case is not None
        return AppealResponse.from_record(result.case)

    @router.post("/appeals/{case_id}/analysis", response_model=AnalysisResponse)
    async def analyze_appeal(case_id: UUID) -> AnalysisResponse:
        result = await workflow_service.analyze(case_id=case_id)
        if result.outcome is AnalyzeOutcome.NOT_FOUND:
            raise HTTPException(status_code=404, detail=_CASE_NOT_FOUND)
        if result.outcome is AnalyzeOutcome.INCOMPLETE_FACTS:
            raise HTTPException(
                status_code=422,
                detail={
                    "error": "incomplete_facts",
                    "missing_fields": list(result.missing_fields),
                },
            )
        if result.outcome is AnalyzeOutcome.WRONG_STATE:
            raise HTTPException(status_code=409, detail="case has already been analyzed")
        if result.outcome is AnalyzeOutcome.CONFLICT:
            raise HTTPException(status_code=409, detail="case changed concurrently; try again")

        assert result.case is not None
        assert result.analysis is not None
        payload = result.analysis.to_payload()
        return AnalysisResponse(
            case=AppealResponse.from_record(result.case),
            contravention_category=result.analysis.contravention_category,
            has_specific_defence=result.analysis.has_specific_defence,
            primary_defence=payload["primary_defence"],
            supporting_defences=payload["supporting_defences"],
            applicable_defences=payload["applicable_defences"],
            general_defences=payload["general_defences"],
        )

    @router.post(
        "/appeals/{case_id}/payment-canceled",
        response_model=PaymentCanceledResponse,
    )
    async def payment_canceled(case_id: UUID) -> PaymentCanceledResponse:
        result = await workflow_service.record_payment_canceled(case_id=case_id)
        if result.outcome is PaymentCanceledOutcome.NOT_FOUND:
            raise HTTPException(status_code=404, detail=_CASE_NOT_FOUND)
        if result.outcome is PaymentCanceledOutcome.WRONG_STATE:
            raise HTTPException(status_code=409, detail="case is not awaiting payment")
        assert result.status is not None
        return PaymentCanceledResponse(case_id=case_id, status=result.status.value)

    @router.post("/appeals/{case_id}/letter", response_model=LetterResponse)
    async def generate_letter(case_id: UUID, response: Response) -> LetterResponse:
        result = await workflow_service.generate_letter(case_id=case_id)
        if result.outcome is GenerateLetterOutcome.NOT_FOUND:
            raise HTTPException(status_code=404, detail=_CASE_NOT_FOUND)
        if result.outcome is GenerateLetterOutcome.WRONG_STATE:
            raise HTTPException(status_code=409, detail="case has not been paid for")
        if result.outcome is GenerateLetterOutcome.RETRYABLE_FAILURE:
            raise HTTPException(
                status_code=503,
                detail="letter generation failed; try again",
            )
        if result.outcome is GenerateLetterOutcome.IN_PROGRESS:
            response.status_code = 202

        return LetterResponse(
            case_id=case_id,
            outcome=result.outcome.value,
            status=result.status.value if result.status else None,
            letter_text=result.letter_text,
        )

    return router
