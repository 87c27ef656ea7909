"""SQLAlchemy adapter for the background job queue."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any, Final, cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from appeal_automation.application.ports.job_queue_port import (
    JobEnqueueInput,
    JobQueuePort,
    JobRecord,
)
from appeal_automation.infrastructure.db.metadata import jobs

_ACTIVE_STATUSES: Final[tuple[str, ...]] = ("queued", "running")

_POSTGRES_CLAIM = sa.text(
    """
    WITH claim AS (
        SELECT job_id
        FROM jobs
        WHERE status = 'queued' AND run_after <= now()
        ORDER BY job_id
        FOR UPDATE SKIP LOCKED
        LIMIT :limit
    )
    UPDATE jobs
    SET status = 'running',
        updated_at = now()
    WHERE job_id IN (SELECT job_id FROM claim)
    RETURNING *
    """
)

# SQLite serializes writers on the database file, so a plain UPDATE claim is exclusive.
_SQLITE_CLAIM = sa.text(
    """
    UPDATE jobs
    SET status = 'running',
        updated_at = CURRENT_TIMESTAMP
    WHERE job_id IN (
        SELECT job_id
        FROM jobs
        WHERE status = 'queued' AND run_after <= :now
        ORDER BY job_id
        LIMIT :limit
    )
    RETURNING *
    """
)


class SqlAlchemyJobQueueRepository(JobQueuePort):
    """Postgres-backed queue repository with a SQLite path for tests and local runs."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def enqueue(self, payload: JobEnqueueInput) -> JobRecord:
        """Insert queued job row and return persisted job record."""

        values: dict[str, Any] = {
            "case_id": payload.case_id,
            "job_type": payload.job_type,
            "payload": payload.payload,
            "max_attempts": payload.max_attempts,
        }
        if payload.run_after is not None:
            values["run_after"] = payload.run_after

        statement = sa.insert(jobs).values(**values).returning(*jobs.c)

        async with self._session_factory() as session:
            result = await session.execute(statement)
            await session.commit()

        return _to_job_record(result.mappings().one())

    async def claim_due_jobs(self, *, limit: int) -> list[JobRecord]:
        """Claim due queued jobs, marking them running, and return claimed rows."""

        if limit < 1:
            return []

        async with self._session_factory() as session:
            if session.get_bind().dialect.name == "postgresql":
                result = await session.execute(_POSTGRES_CLAIM, {"limit": limit})
            else:
                # run_after is stored as offset-free UTC text; compare with a bound UTC value.
                now = datetime.now(tz=UTC)
                result = await session.execute(
                    _SQLITE_CLAIM.bindparams(
                        sa.bindparam("now", type_=sa.DateTime()),
                    ),
                    {"limit": limit, "now": now},
                )
            await session.commit()

        return [_to_job_record(row) for row in result.mappings().all()]

    async def mark_done(self, *, job_id: int) -> None:
        statement = (
            sa.update(jobs)
            .where(jobs.c.job_id == job_id)
            .values(status="done", updated_at=sa.func.current_timestamp())
        )

        async with self._session_factory() as session:
            await session.execute(statement)
            await session.commit()

    async def schedule_retry(
        self,
        *,
        job_id: int,
        run_after: datetime,
        last_error: str,
    ) -> JobRecord:
        """Requeue job with incremented attempts and next run_after timestamp."""

        return await self._finish_attempt(
            job_id=job_id,
            status="queued",
            last_error=last_error,
            run_after=run_after,
        )

    async def mark_dead(self, *, job_id: int, last_error: str) -> JobRecord:
        """Dead-letter a job with incremented attempts and error context."""

        return await self._finish_attempt(job_id=job_id, status="dead", last_error=last_error)

    async def has_active_job(self, *, case_id: UUID, job_type: str) -> bool:
        statement = sa.select(sa.literal(True)).where(
            jobs.c.case_id == case_id,
            jobs.c.job_type == job_type,
            jobs.c.status.in_(_ACTIVE_STATUSES),
        ).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return result.scalar_one_or_none() is True

    async def list_jobs(self, *, case_id: UUID) -> list[JobRecord]:
        """Return every job recorded for one case in enqueue order."""

        statement = sa.select(jobs).where(jobs.c.case_id == case_id).order_by(jobs.c.job_id)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [_to_job_record(row) for row in result.mappings().all()]

    async def _finish_attempt(
        self,
        *,
        job_id: int,
        status: str,
        last_error: str,
        run_after: datetime | None = None,
    ) -> JobRecord:
        values: dict[str, Any] = {
            "status": status,
            "attempts": jobs.c.attempts + 1,
            "last_error": last_error,
            "updated_at": sa.func.current_timestamp(),
        }
        if run_after is not None:
            values["run_after"] = run_after

        statement = (
            sa.update(jobs)
            .where(jobs.c.job_id == job_id)
            .values(**values)
            .returning(*jobs.c)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)
            await session.commit()

        return _to_job_record(result.mappings().one())


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _to_job_record(row: RowMapping) -> JobRecord:
    raw_payload = row["payload"]
    if isinstance(raw_payload, str):
        payload_value = cast(dict[str, Any], json.loads(raw_payload))
    else:
        payload_value = cast(dict[str, Any], raw_payload)
    raw_case_id = row["case_id"]
    case_id = None
    if raw_case_id is not None:
        case_id = raw_case_id if isinstance(raw_case_id, UUID) else UUID(str(raw_case_id))

    return JobRecord(
        job_id=cast(int, row["job_id"]),
        case_id=case_id,
        job_type=cast(str, row["job_type"]),
        status=cast(str, row["status"]),
        run_after=_as_utc(_coerce_datetime(row["run_after"])),
        attempts=cast(int, row["attempts"]),
        max_attempts=cast(int, row["max_attempts"]),
        last_error=cast(str | None, row["last_error"]),
        payload=payload_value,
        created_at=_as_utc(_coerce_datetime(row["created_at"])),
        updated_at=_as_utc(_coerce_datetime(row["updated_at"])),
    )


def _coerce_datetime(value: object) -> datetime:
    # Raw text claims on SQLite return the stored string rather than a datetime.
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
