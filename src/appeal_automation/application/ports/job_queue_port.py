"""Port for the durable background job queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

JOB_TYPE_GENERATE_LETTER = "generate_letter"


@dataclass(frozen=True)
class JobEnqueueInput:
    case_id: UUID | None
    job_type: str
    payload: dict[str, Any] = field(default_factory=dict)
    max_attempts: int = 5
    run_after: datetime | None = None


@dataclass(frozen=True)
class JobRecord:
    job_id: int
    case_id: UUID | None
    job_type: str
    status: str
    run_after: datetime
    attempts: int
    max_attempts: int
    last_error: str | None
    payload: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class JobQueuePort(Protocol):
    """Async queue contract used by the workflow service and worker runtime."""

    async def enqueue(self, payload: JobEnqueueInput) -> JobRecord:
        """Insert a queued job."""

    async def claim_due_jobs(self, *, limit: int) -> list[JobRecord]:
        """Claim due queued jobs and mark them running."""

    async def mark_done(self, *, job_id: int) -> None:
        """Mark a job as done."""

    async def schedule_retry(
        self,
        *,
        job_id: int,
        run_after: datetime,
        last_error: str,
    ) -> JobRecord:
        """Requeue a job for a later attempt."""

    async def mark_dead(self, *, job_id: int, last_error: str) -> JobRecord:
        """Dead-letter a job after its final attempt."""

    async def has_active_job(self, *, case_id: UUID, job_type: str) -> bool:
        """Return whether the case has a queued or running job of this type."""
