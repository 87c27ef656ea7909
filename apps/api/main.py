"""api entrypoint and HTTP route wiring."""

from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI, HTTPException, Request

from appeal_automation.application.dto.payment_models import PaymentWebhookResponse
from appeal_automation.application.services.appeal_workflow_service import AppealWorkflowService
from appeal_automation.application.services.payment_reconciler_service import (
    PaymentReconcilerService,
    ReconcileOutcome,
)
from appeal_automation.application.services.ticket_extraction_service import (
    TicketExtractionService,
)
from appeal_automation.config.settings import load_settings
from appeal_automation.infrastructure.db.session import create_session_factory
from appeal_automation.infrastructure.http.appeal_router import build_appeal_router
from appeal_automation.infrastructure.llm.runtime_clients import build_vision_client
from appeal_automation.infrastructure.logging import configure_logging
from appeal_automation.infrastructure.workflow_wiring import build_workflow_service

API_HOST = "0.0.0.0"
API_PORT = 8000
logger = logging.getLogger(__name__)


def create_app(
    *,
    payment_webhook_secret: str | None = None,
    workflow_service: AppealWorkflowService | None = None,
    ticket_extraction_service: TicketExtractionService | None = None,
) -> FastAPI:
    """Create FastAPI app for appeal routes and the payment webhook."""

    if (
        payment_webhook_secret is None
        or workflow_service is None
        or ticket_extraction_service is None
    ):
        settings = load_settings()
        configure_logging(level=settings.log_level)
        if payment_webhook_secret is None:
            payment_webhook_secret = settings.payment_webhook_secret
        if workflow_service is None:
            workflow_service = build_workflow_service(
                settings=settings,
                session_factory=create_session_factory(settings.database_url),
            )
        if ticket_extraction_service is None:
            ticket_extraction_service = TicketExtractionService(
                vision_client=build_vision_client(settings=settings),
                timeout_seconds=settings.ocr_timeout_seconds,
            )

    reconciler = PaymentReconcilerService(
        webhook_secret=payment_webhook_secret,
        workflow=workflow_service,
    )

    app = FastAPI(title="pcn-appeal-automation")
    app.include_router(
        build_appeal_router(
            workflow_service=workflow_service,
            ticket_extraction_service=ticket_extraction_service,
        )
    )

    @app.post("/webhooks/payments", response_model=PaymentWebhookResponse)
    async def payment_webhook(request: Request) -> PaymentWebhookResponse:
        raw_body = await request.body()
        result = await reconciler.reconcile(
            raw_body=raw_body,
            signature=request.headers.get("x-signature"),
        )
        logger.info(
            "webhook_payment_result case_id=%s outcome=%s",
            result.case_id,
            result.outcome.value,
        )

        if result.outcome is ReconcileOutcome.UNAUTHENTICATED:
            raise HTTPException(status_code=401, detail="invalid signature")
        if result.outcome is ReconcileOutcome.NOT_FOUND:
            raise HTTPException(status_code=404, detail="case not found")
        if result.outcome is ReconcileOutcome.WRONG_STATE:
            raise HTTPException(status_code=409, detail="case not awaiting payment")

        return PaymentWebhookResponse(ok=True, outcome=result.outcome.value)

    return app


def run_asgi_server(*, host: str = API_HOST, port: int = API_PORT) -> None:
    """Run the api as a long-lived ASGI process using application factory mode."""

    uvicorn.run(
        "apps.api.main:create_app",
        host=host,
        port=port,
        factory=True,
    )


def main() -> None:
    """Run api runtime process."""

    run_asgi_server()


if __name__ == "__main__":
    main()
