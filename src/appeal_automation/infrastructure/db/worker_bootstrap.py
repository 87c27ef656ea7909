"""Startup reconciliation queries for worker runtime."""

from __future__ import annotations

from typing import Any, cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from appeal_automation.domain.appeal_status import AppealStatus
from appeal_automation.infrastructure.db.metadata import appeals, jobs


async def reconcile_running_jobs(session_factory: async_sessionmaker[AsyncSession]) -> int:
    """Reset stale running jobs back to queued while keeping attempts unchanged."""

    statement = (
        sa.update(jobs)
        .where(jobs.c.status == "running")
        .values(status="queued", updated_at=sa.func.current_timestamp())
    )

    async with session_factory() as session:
        result = cast(CursorResult[Any], await session.execute(statement))
        await session.commit()

    return int(result.rowcount or 0)


async def release_stale_generations(session_factory: async_sessionmaker[AsyncSession]) -> int:
    """Return cases left in generating by a dead worker to paid."""

    statement = (
        sa.update(appeals)
        .where(appeals.c.status == AppealStatus.GENERATING.value)
        .values(
            status=AppealStatus.PAID.value,
            version=appeals.c.version + 1,
            updated_at=sa.func.current_timestamp(),
        )
    )

    async with session_factory() as session:
        result = cast(CursorResult[Any], await session.execute(statement))
        await session.commit()

    return int(result.rowcount or 0)


async def open_stale_payment_windows(session_factory: async_sessionmaker[AsyncSession]) -> int:
    """Move cases whose analysis was recorded without opening payment to awaiting_payment."""

    statement = (
        sa.update(appeals)
        .where(appeals.c.status == AppealStatus.ANALYZED.value)
        .values(
            status=AppealStatus.AWAITING_PAYMENT.value,
            version=appeals.c.version + 1,
            updated_at=sa.func.current_timestamp(),
        )
    )

    async with session_factory() as session:
        result = cast(CursorResult[Any], await session.execute(statement))
        await session.commit()

    return int(result.rowcount or 0)


async def list_paid_case_ids(session_factory: async_sessionmaker[AsyncSession]) -> list[UUID]:
    """Return ids of paid cases still waiting for a letter."""

    statement = (
        sa.select(appeals.c.case_id)
        .where(appeals.c.status == AppealStatus.PAID.value)
        .order_by(appeals.c.paid_at, appeals.c.case_id)
    )

    async with session_factory() as session:
        result = await session.execute(statement)

    return [
        value if isinstance(value, UUID) else UUID(str(value))
        for value in result.scalars().all()
    ]
