"""Compose the appeal workflow service shared by the api and worker processes."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from appeal_automation.application.ports.letter_generator_port import LetterGeneratorPort
from appeal_automation.application.services.appeal_workflow_service import AppealWorkflowService
from appeal_automation.config.settings import Settings
from appeal_automation.infrastructure.db.appeal_repository import SqlAlchemyAppealRepository
from appeal_automation.infrastructure.db.audit_repository import SqlAlchemyAuditRepository
from appeal_automation.infrastructure.db.job_queue_repository import SqlAlchemyJobQueueRepository
from appeal_automation.infrastructure.llm.runtime_clients import build_letter_drafting_service


def build_workflow_service(
    *,
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    letter_generator: LetterGeneratorPort | None = None,
) -> AppealWorkflowService:
    """Build the workflow service with SQLAlchemy-backed dependencies."""

    return AppealWorkflowService(
        appeal_repository=SqlAlchemyAppealRepository(session_factory),
        audit_repository=SqlAlchemyAuditRepository(session_factory),
        job_queue=SqlAlchemyJobQueueRepository(session_factory),
        letter_generator=letter_generator or build_letter_drafting_service(settings=settings),
        letter_timeout_seconds=settings.letter_generation_timeout_seconds,
        letter_job_max_attempts=settings.letter_job_max_attempts,
    )
