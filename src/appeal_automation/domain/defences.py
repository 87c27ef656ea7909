"""Defence templates and the pure per-defence applicability evaluator."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import StrEnum
from typing import Any, Final

from appeal_automation.domain.appeal_facts import AppealFacts
from appeal_automation.domain.contravention_rules import ContraventionRule

GRACE_PERIOD: Final[timedelta] = timedelta(minutes=10)


class Strength(StrEnum):
    """Fixed ordered strength scale, strongest first."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _STRENGTH_RANK[self]


_STRENGTH_RANK: Final[dict[Strength, int]] = {
    Strength.HIGH: 3,
    Strength.MEDIUM: 2,
    Strength.LOW: 1,
}


class DefenceCategory(StrEnum):
    EXEMPTION = "exemption"
    PROCEDURAL = "procedural"
    PAYMENT = "payment"


@dataclass(frozen=True)
class DefenceTemplate:
    """Read-only blueprint for one defence; never mutated by evaluation."""

    id: str
    name: str
    description: str
    strength: Strength
    category: DefenceCategory
    evidence: tuple[str, ...]


@dataclass(frozen=True)
class Defence:
    """Evaluation output for one template against one case's facts."""

    id: str
    name: str
    description: str
    strength: Strength
    category: DefenceCategory
    evidence: tuple[str, ...]
    applicable: bool
    reasoning: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "strength": self.strength.value,
            "category": self.category.value,
            "evidence": list(self.evidence),
            "applicable": self.applicable,
            "reasoning": self.reasoning,
        }


# Declaration order is the ranking tie-break.
DEFENCE_TEMPLATES: Final[tuple[DefenceTemplate, ...]] = (
    DefenceTemplate(
        id="loading",
        name="Loading/Unloading Goods",
        description="You were actively loading or unloading goods from your vehicle",
        strength=Strength.HIGH,
        category=DefenceCategory.EXEMPTION,
        evidence=("delivery_notes", "cctv", "witness_statements"),
    ),
    DefenceTemplate(
        id="passenger_dropoff",
        name="Passenger Drop-off/Pick-up",
        description="You were picking up or dropping off passengers",
        strength=Strength.MEDIUM,
        category=DefenceCategory.EXEMPTION,
        evidence=("passenger_details", "cctv", "witness_statements"),
    ),
    DefenceTemplate(
        id="blue_badge",
        name="Blue Badge Holder",
        description="You are a registered Blue Badge holder",
        strength=Strength.HIGH,
        category=DefenceCategory.EXEMPTION,
        evidence=("blue_badge", "clock", "permit_display"),
    ),
    DefenceTemplate(
        id="medical_emergency",
        name="Medical Emergency",
        description="There was a medical emergency requiring immediate parking",
        strength=Strength.HIGH,
        category=DefenceCategory.EXEMPTION,
        evidence=("medical_records", "hospital_letter", "police_report"),
    ),
    DefenceTemplate(
        id="grace_period",
        name="Grace Period",
        description="You were within the allowed grace period for parking",
        strength=Strength.MEDIUM,
        category=DefenceCategory.PROCEDURAL,
        evidence=("payment_receipt", "timestamp", "cctv"),
    ),
    DefenceTemplate(
        id="signage_issues",
        name="Inadequate or Missing Signage",
        description="Parking signs were unclear, missing, or obscured",
        strength=Strength.HIGH,
        category=DefenceCategory.PROCEDURAL,
        evidence=("photos", "location_survey", "witness_statements"),
    ),
    DefenceTemplate(
        id="bay_marking_issues",
        name="Faded or Absent Bay Markings",
        description="Parking bay markings were unclear or missing",
        strength=Strength.MEDIUM,
        category=DefenceCategory.PROCEDURAL,
        evidence=("photos", "highway_inspection", "council_records"),
    ),
    DefenceTemplate(
        id="payment_made",
        name="Payment Made",
        description="You had paid for parking or had a valid permit",
        strength=Strength.HIGH,
        category=DefenceCategory.PAYMENT,
        evidence=("payment_receipt", "bank_statement", "permit"),
    ),
    DefenceTemplate(
        id="observation_period",
        name="Insufficient Observation Period",
        description="CEO did not observe for the required minimum time",
        strength=Strength.MEDIUM,
        category=DefenceCategory.PROCEDURAL,
        evidence=("cctv", "ceo_notes", "timestamp"),
    ),
    DefenceTemplate(
        id="late_council_reply",
        name="Late Council Response",
        description="Council failed to respond within 56 days to previous challenge",
        strength=Strength.HIGH,
        category=DefenceCategory.PROCEDURAL,
        evidence=("previous_correspondence", "proof_of_posting", "council_records"),
    ),
)


@dataclass(frozen=True)
class _Verdict:
    applicable: bool
    reasoning: str
    strength: Strength | None = None


_Predicate = Callable[[AppealFacts, ContraventionRule], _Verdict]


def grace_period_end(*, issue_datetime: datetime, paid_until_clock: time) -> datetime:
    """Anchor the paid-until clock time to the issue date and add the grace window."""

    anchored = datetime.combine(
        issue_datetime.date(),
        paid_until_clock,
        tzinfo=issue_datetime.tzinfo,
    )
    return anchored + GRACE_PERIOD


def _loading(facts: AppealFacts, rule: ContraventionRule) -> _Verdict:
    if not facts.loading_unloading:
        return _Verdict(False, "User did not report loading or unloading goods")
    strength = Strength.HIGH if "loading" in rule.category else Strength.MEDIUM
    return _Verdict(True, "User confirmed they were loading/unloading goods", strength)


def _passenger_dropoff(facts: AppealFacts, rule: ContraventionRule) -> _Verdict:
    if not facts.passenger_dropoff:
        return _Verdict(False, "User did not report picking up or dropping off passengers")
    return _Verdict(
        True,
        "User confirmed they were picking up/dropping off passengers",
        Strength.MEDIUM,
    )


def _blue_badge(facts: AppealFacts, rule: ContraventionRule) -> _Verdict:
    if not facts.blue_badge:
        return _Verdict(False, "User did not report holding a Blue Badge")
    return _Verdict(True, "User confirmed they hold a Blue Badge", Strength.HIGH)


def _medical_emergency(facts: AppealFacts, rule: ContraventionRule) -> _Verdict:
    if not facts.medical_emergency:
        return _Verdict(False, "User did not report a medical emergency")
    return _Verdict(True, "User confirmed there was a medical emergency", Strength.HIGH)


def _grace_period(facts: AppealFacts, rule: ContraventionRule) -> _Verdict:
    if not rule.grace_period_eligible:
        return _Verdict(
            False,
            f"Contravention category '{rule.category}' is not eligible for a grace period",
        )
    if not facts.paid or facts.paid_until is None:
        return _Verdict(False, "No paid-until time was reported")

    deadline = grace_period_end(
        issue_datetime=facts.issue_datetime,
        paid_until_clock=facts.paid_until,
    )
    if facts.issue_datetime <= deadline:
        return _Verdict(
            True,
            "Vehicle was within 10-minute grace period after paid time expired",
            Strength.HIGH,
        )
    return _Verdict(
        False,
        "Ticket was issued more than 10 minutes after paid time expired",
    )


def _signage_issues(facts: AppealFacts, rule: ContraventionRule) -> _Verdict:
    if facts.signage_visible:
        return _Verdict(False, "User confirmed signage was visible")
    return _Verdict(True, "User confirmed signage was not visible or clear", Strength.HIGH)


def _bay_marking_issues(facts: AppealFacts, rule: ContraventionRule) -> _Verdict:
    if facts.markings_visible:
        return _Verdict(False, "User confirmed road markings were visible")
    return _Verdict(
        True,
        "User confirmed road markings were not visible or clear",
        Strength.MEDIUM,
    )


def _payment_made(facts: AppealFacts, rule: ContraventionRule) -> _Verdict:
    if not facts.paid:
        return _Verdict(False, "User did not report paying or holding a permit")
    return _Verdict(
        True,
        "User confirmed they had paid for parking or had a permit",
        Strength.HIGH,
    )


def _observation_period(facts: AppealFacts, rule: ContraventionRule) -> _Verdict:
    if not facts.no_observation_period:
        return _Verdict(False, "User did not claim a missing observation period")
    if not rule.observation_required:
        return _Verdict(False, "Contravention does not require an observation period")
    return _Verdict(
        True,
        "User confirmed no observation period was observed by CEO",
        Strength.MEDIUM,
    )


def _late_council_reply(facts: AppealFacts, rule: ContraventionRule) -> _Verdict:
    if not facts.late_council_reply:
        return _Verdict(False, "User did not report a missed 56-day response deadline")
    return _Verdict(
        True,
        "User confirmed council did not respond within 56 days to previous challenge",
        Strength.HIGH,
    )


_PREDICATES: Final[dict[str, _Predicate]] = {
    "loading": _loading,
    "passenger_dropoff": _passenger_dropoff,
    "blue_badge": _blue_badge,
    "medical_emergency": _medical_emergency,
    "grace_period": _grace_period,
    "signage_issues": _signage_issues,
    "bay_marking_issues": _bay_marking_issues,
    "payment_made": _payment_made,
    "observation_period": _observation_period,
    "late_council_reply": _late_council_reply,
}


def evaluate_defences(
    facts: AppealFacts,
    rule: ContraventionRule,
    *,
    templates: tuple[DefenceTemplate, ...] = DEFENCE_TEMPLATES,
) -> list[Defence]:
    """Evaluate every template independently and return fresh `Defence` values."""

    evaluated: list[Defence] = []
    for template in templates:
        verdict = _PREDICATES[template.id](facts, rule)
        evaluated.append(
            Defence(
                id=template.id,
                name=template.name,
                description=template.description,
                strength=verdict.strength or template.strength,
                category=template.category,
                evidence=template.evidence,
                applicable=verdict.applicable,
                reasoning=verdict.reasoning,
            )
        )
    return evaluated
