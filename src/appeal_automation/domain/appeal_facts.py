"""User-confirmed appeal facts and strict parsing from their persisted JSON shape."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, time
from enum import StrEnum
from typing import Any

FLAG_FIELDS: tuple[str, ...] = (
    "paid",
    "loading_unloading",
    "passenger_dropoff",
    "blue_badge",
    "medical_emergency",
    "signage_visible",
    "markings_visible",
    "no_observation_period",
    "late_council_reply",
)


class IssuerType(StrEnum):
    """Who issued the ticket; selects the governing regulations downstream."""

    COUNCIL = "council"
    PRIVATE = "private"


@dataclass(frozen=True)
class IncompleteAppealFactsError(ValueError):
    """Confirmed facts are missing or malformed for the listed fields."""

    missing_fields: tuple[str, ...]

    def __str__(self) -> str:
        return "incomplete appeal facts: " + ", ".join(self.missing_fields)


@dataclass(frozen=True)
class AppealFacts:
    """Complete fact set for one appeal, immutable within an analysis pass."""

    issuer_type: IssuerType
    contravention_code: str
    issue_datetime: datetime
    paid: bool
    loading_unloading: bool
    passenger_dropoff: bool
    blue_badge: bool
    medical_emergency: bool
    signage_visible: bool
    markings_visible: bool
    no_observation_period: bool
    late_council_reply: bool
    paid_until: time | None = None
    payment_method: str | None = None
    permit_type: str | None = None


def parse_paid_until(value: object) -> time | None:
    """Parse an `HH:MM` or `HH:MM:SS` clock time; blank means not provided."""

    if value is None:
        return None
    if isinstance(value, time):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        parsed = time.fromisoformat(text)
    else:
        raise ValueError("paid_until must be a clock time string")
    if parsed.tzinfo is not None:
        raise ValueError("paid_until must be a local clock time without a UTC offset")
    return parsed


def parse_appeal_facts(raw: Mapping[str, Any]) -> AppealFacts:
    """Build `AppealFacts` from confirmed input, reporting every unusable field."""

    missing: list[str] = []

    issuer_type: IssuerType | None = None
    try:
        issuer_type = IssuerType(str(raw.get("issuer_type") or "").strip().lower())
    except ValueError:
        missing.append("issuer_type")

    code = raw.get("contravention_code")
    contravention_code = code.strip() if isinstance(code, str) else ""
    if not contravention_code:
        missing.append("contravention_code")

    issue_datetime = _parse_datetime(raw.get("issue_datetime"))
    if issue_datetime is None:
        missing.append("issue_datetime")

    flags: dict[str, bool] = {}
    for name in FLAG_FIELDS:
        value = raw.get(name)
        if isinstance(value, bool):
            flags[name] = value
        else:
            missing.append(name)

    try:
        paid_until = parse_paid_until(raw.get("paid_until"))
    except ValueError:
        paid_until = None
        missing.append("paid_until")

    if missing:
        raise IncompleteAppealFactsError(missing_fields=tuple(missing))

    assert issuer_type is not None
    assert issue_datetime is not None
    return AppealFacts(
        issuer_type=issuer_type,
        contravention_code=contravention_code,
        issue_datetime=issue_datetime,
        paid_until=paid_until,
        payment_method=_optional_text(raw.get("payment_method")),
        permit_type=_optional_text(raw.get("permit_type")),
        **flags,
    )


def facts_to_payload(facts: AppealFacts) -> dict[str, Any]:
    """Serialize facts back to the JSON shape accepted by `parse_appeal_facts`."""

    payload: dict[str, Any] = {
        "issuer_type": facts.issuer_type.value,
        "contravention_code": facts.contravention_code,
        "issue_datetime": facts.issue_datetime.isoformat(),
        "paid_until": (
            facts.paid_until.strftime("%H:%M") if facts.paid_until is not None else None
        ),
        "payment_method": facts.payment_method,
        "permit_type": facts.permit_type,
    }
    for name in FLAG_FIELDS:
        payload[name] = getattr(facts, name)
    return payload


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        return None


def _optional_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None
