"""Appeal status enum for the payment-gated appeal state machine."""

from __future__ import annotations

from enum import StrEnum


class AppealStatus(StrEnum):
    """Lifecycle states of one appeal case."""

    DRAFT = "draft"
    ANALYZED = "analyzed"
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    GENERATING = "generating"
    COMPLETED = "completed"


PAID_OR_LATER: frozenset[AppealStatus] = frozenset(
    {AppealStatus.PAID, AppealStatus.GENERATING, AppealStatus.COMPLETED}
)
