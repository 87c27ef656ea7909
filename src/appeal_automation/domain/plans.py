"""Fixed two-tier plan pricing table recognized by plan-type tag."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class PlanType(StrEnum):
    SINGLE = "single"
    ANNUAL = "annual"


class UnknownPlanTypeError(ValueError):
    """Raised when a payment references a plan tag outside the price table."""


@dataclass(frozen=True)
class PlanPrice:
    plan_type: PlanType
    amount_minor: int
    currency: str
    product_name: str
    description: str


_PRICES: dict[PlanType, PlanPrice] = {
    PlanType.SINGLE: PlanPrice(
        plan_type=PlanType.SINGLE,
        amount_minor=299,
        currency="gbp",
        product_name="Single Appeal Letter",
        description="AI-generated appeal letter for one parking ticket",
    ),
    PlanType.ANNUAL: PlanPrice(
        plan_type=PlanType.ANNUAL,
        amount_minor=999,
        currency="gbp",
        product_name="Unlimited Annual Appeals",
        description="Unlimited parking appeal letters for one year",
    ),
}


def parse_plan_type(value: object) -> PlanType:
    """Return the plan tag or raise `UnknownPlanTypeError`."""

    try:
        return PlanType(str(value).strip().lower())
    except ValueError as error:
        raise UnknownPlanTypeError(f"unknown plan type: {value!r}") from error


def price_for(plan_type: PlanType) -> PlanPrice:
    return _PRICES[plan_type]


def all_prices() -> tuple[PlanPrice, ...]:
    return tuple(_PRICES[plan_type] for plan_type in PlanType)


def extend_subscription(*, current_expiry: datetime | None, now: datetime) -> datetime:
    """Return the new annual expiry: one year after the later of now and current expiry."""

    start = now if current_expiry is None or current_expiry < now else current_expiry
    try:
        return start.replace(year=start.year + 1)
    except ValueError:
        # 29 February rolls to 28 February.
        return start.replace(year=start.year + 1, day=28)
