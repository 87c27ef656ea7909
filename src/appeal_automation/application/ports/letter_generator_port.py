"""Port for the external appeal-letter drafting collaborator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol
from uuid import UUID


class LetterGenerationError(RuntimeError):
    """Collaborator unreachable or returned unusable output; safe to retry."""


@dataclass(frozen=True)
class LetterDraftRequest:
    """Confirmed facts plus the ranked defences chosen for the letter."""

    case_id: UUID
    facts: dict[str, Any]
    ticket: dict[str, Any]
    contravention_category: str | None
    primary_defence: dict[str, Any] | None
    supporting_defences: list[dict[str, Any]]
    general_defences: list[str]


@dataclass(frozen=True)
class LetterDraft:
    letter_text: str
    analysis: dict[str, Any] | None = None


class LetterGeneratorPort(Protocol):
    async def generate(self, request: LetterDraftRequest) -> LetterDraft:
        """Return drafted letter text for the request or raise `LetterGenerationError`."""
