"""Deterministic transition guards for appeal statuses."""

from __future__ import annotations

from typing import Final

from appeal_automation.domain.appeal_status import AppealStatus


class InvalidAppealTransitionError(ValueError):
    """Raised when an attempted appeal state transition is not allowed."""


_ALLOWED_TRANSITIONS: Final[dict[AppealStatus, frozenset[AppealStatus]]] = {
    AppealStatus.DRAFT: frozenset({AppealStatus.ANALYZED}),
    AppealStatus.ANALYZED: frozenset({AppealStatus.AWAITING_PAYMENT}),
    AppealStatus.AWAITING_PAYMENT: frozenset({AppealStatus.PAID}),
    AppealStatus.PAID: frozenset({AppealStatus.GENERATING}),
    # A failed generation releases the claim back to paid.
    AppealStatus.GENERATING: frozenset({AppealStatus.COMPLETED, AppealStatus.PAID}),
    AppealStatus.COMPLETED: frozenset(),
}


def can_transition(from_status: AppealStatus, to_status: AppealStatus) -> bool:
    """Return whether the transition is valid for the appeal state machine."""

    allowed_targets = _ALLOWED_TRANSITIONS[from_status]
    return to_status in allowed_targets


def assert_transition(from_status: AppealStatus, to_status: AppealStatus) -> None:
    """Assert a transition is allowed, else raise deterministic domain error."""

    if not can_transition(from_status, to_status):
        raise InvalidAppealTransitionError(
            f"Invalid appeal status transition: {from_status.value} -> {to_status.value}"
        )
