"""Port for append-only appeal audit events."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID


@dataclass(frozen=True)
class AuditEventCreateInput:
    """Input payload for inserting an audit event."""

    case_id: UUID
    actor_type: str
    event_type: str
    payload: dict[str, Any] = field(default_factory=dict)
    actor_user_id: str | None = None


@dataclass(frozen=True)
class AuditEventRecord:
    id: int
    case_id: UUID
    actor_type: str
    event_type: str
    payload: dict[str, Any]
    actor_user_id: str | None


class AuditRepositoryPort(Protocol):
    """Async audit repository contract."""

    async def append_event(self, payload: AuditEventCreateInput) -> int:
        """Append an audit event and return its numeric id."""

    async def list_events(self, *, case_id: UUID) -> list[AuditEventRecord]:
        """Return a case's audit events in insertion order."""
