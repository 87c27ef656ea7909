"""SQLAlchemy adapter for append-only appeal audit events."""

from __future__ import annotations

from typing import Any, cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from appeal_automation.application.ports.audit_repository_port import (
    AuditEventCreateInput,
    AuditEventRecord,
    AuditRepositoryPort,
)
from appeal_automation.infrastructure.db.metadata import appeal_events


class SqlAlchemyAuditRepository(AuditRepositoryPort):
    """Audit repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append_event(self, payload: AuditEventCreateInput) -> int:
        """Insert an audit event row and return its numeric id."""

        statement = sa.insert(appeal_events).values(
            case_id=payload.case_id,
            actor_type=payload.actor_type,
            actor_user_id=payload.actor_user_id,
            event_type=payload.event_type,
            payload=payload.payload,
        ).returning(appeal_events.c.id)

        async with self._session_factory() as session:
            result = await session.execute(statement)
            await session.commit()

        inserted_id = result.scalar_one()
        return int(inserted_id)

    async def list_events(self, *, case_id: UUID) -> list[AuditEventRecord]:
        statement = (
            sa.select(appeal_events)
            .where(appeal_events.c.case_id == case_id)
            .order_by(appeal_events.c.id)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [
            AuditEventRecord(
                id=int(row["id"]),
                case_id=case_id,
                actor_type=cast(str, row["actor_type"]),
                event_type=cast(str, row["event_type"]),
                payload=cast(dict[str, Any], row["payload"]),
                actor_user_id=cast(str | None, row["actor_user_id"]),
            )
            for row in result.mappings().all()
        ]
