"""worker entrypoint."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from appeal_automation.application.ports.job_queue_port import (
    JOB_TYPE_GENERATE_LETTER,
    JobRecord,
)
from appeal_automation.application.ports.letter_generator_port import LetterGeneratorPort
from appeal_automation.application.services.appeal_workflow_service import (
    AppealWorkflowService,
    GenerateLetterOutcome,
)
from appeal_automation.application.services.worker_runtime import JobHandler, WorkerRuntime
from appeal_automation.config.settings import Settings, load_settings
from appeal_automation.infrastructure.db.audit_repository import SqlAlchemyAuditRepository
from appeal_automation.infrastructure.db.job_queue_repository import SqlAlchemyJobQueueRepository
from appeal_automation.infrastructure.db.session import create_session_factory
from appeal_automation.infrastructure.db.worker_bootstrap import (
    list_paid_case_ids,
    open_stale_payment_windows,
    reconcile_running_jobs,
    release_stale_generations,
)
from appeal_automation.infrastructure.logging import configure_logging
from appeal_automation.infrastructure.workflow_wiring import build_workflow_service

logger = logging.getLogger(__name__)


class LetterGenerationRetryableError(RuntimeError):
    """Raised from the job handler so the runtime schedules another attempt."""


@dataclass(frozen=True)
class WorkerStartupResult:
    """Result summary for worker boot reconciliation and recovery scan."""

    reconciled_jobs: int
    released_generations: int
    opened_payment_windows: int
    enqueued_letter_jobs: int


def build_runtime_job_handlers(
    *,
    workflow_service: AppealWorkflowService,
) -> dict[str, JobHandler]:
    """Build runtime job handlers bound to the workflow service."""

    async def handle_generate_letter(job: JobRecord) -> None:
        case_id = _require_case_id(job)
        result = await workflow_service.generate_letter(case_id=case_id)
        if result.outcome is GenerateLetterOutcome.RETRYABLE_FAILURE:
            raise LetterGenerationRetryableError(result.error or "letter generation failed")
        logger.info(
            "generate_letter_job_result case_id=%s outcome=%s",
            case_id,
            result.outcome.value,
        )

    return {JOB_TYPE_GENERATE_LETTER: handle_generate_letter}


def build_worker_runtime(
    *,
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    letter_generator: LetterGeneratorPort | None = None,
) -> WorkerRuntime:
    """Build worker runtime with composed repositories and handlers."""

    workflow_service = build_workflow_service(
        settings=settings,
        session_factory=session_factory,
        letter_generator=letter_generator,
    )
    return WorkerRuntime(
        queue=SqlAlchemyJobQueueRepository(session_factory),
        handlers=build_runtime_job_handlers(workflow_service=workflow_service),
        audit_repository=SqlAlchemyAuditRepository(session_factory),
        poll_interval_seconds=settings.worker_poll_interval_seconds,
    )


def _require_case_id(job: JobRecord) -> UUID:
    if job.case_id is None:
        raise ValueError(f"Job {job.job_id} requires case_id for job type {job.job_type}")
    return job.case_id


async def run_worker_startup(
    *,
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> WorkerStartupResult:
    """Recover work interrupted by a previous process and requeue paid cases without a job."""

    reconciled_jobs = await reconcile_running_jobs(session_factory)
    released_generations = await release_stale_generations(session_factory)
    opened_payment_windows = await open_stale_payment_windows(session_factory)

    workflow_service = build_workflow_service(
        settings=settings,
        session_factory=session_factory,
    )
    enqueued = 0
    for case_id in await list_paid_case_ids(session_factory):
        if await workflow_service.enqueue_letter_generation(case_id=case_id):
            enqueued += 1

    return WorkerStartupResult(
        reconciled_jobs=reconciled_jobs,
        released_generations=released_generations,
        opened_payment_windows=opened_payment_windows,
        enqueued_letter_jobs=enqueued,
    )


async def _run_worker() -> None:
    settings = load_settings()
    configure_logging(level=settings.log_level)
    logger.info(
        "worker_starting poll_interval_seconds=%s llm_mode=%s",
        settings.worker_poll_interval_seconds,
        settings.llm_runtime_mode,
    )

    session_factory = create_session_factory(settings.database_url)
    startup = await run_worker_startup(settings=settings, session_factory=session_factory)
    logger.info(
        (
            "worker_startup_complete reconciled_jobs=%s "
            "released_generations=%s opened_payment_windows=%s enqueued_letter_jobs=%s"
        ),
        startup.reconciled_jobs,
        startup.released_generations,
        startup.opened_payment_windows,
        startup.enqueued_letter_jobs,
    )

    runtime = build_worker_runtime(settings=settings, session_factory=session_factory)
    stop_event = asyncio.Event()

    await runtime.run_until_stopped(stop_event)


def main() -> None:
    """Run worker startup reconciliation and polling runtime."""

    asyncio.run(_run_worker())


if __name__ == "__main__":
    main()
