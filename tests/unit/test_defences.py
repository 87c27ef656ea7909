from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, time

import pytest

from appeal_automation.domain.appeal_facts import AppealFacts, IssuerType
from appeal_automation.domain.contravention_rules import lookup
from appeal_automation.domain.defences import (
    DEFENCE_TEMPLATES,
    Defence,
    Strength,
    evaluate_defences,
    grace_period_end,
)


def _facts(**overrides: object) -> AppealFacts:
    base = AppealFacts(
        issuer_type=IssuerType.COUNCIL,
        contravention_code="06",
        issue_datetime=datetime(2026, 3, 4, 14, 9),
        paid=False,
        loading_unloading=False,
        passenger_dropoff=False,
        blue_badge=False,
        medical_emergency=False,
        signage_visible=True,
        markings_visible=True,
        no_observation_period=False,
        late_council_reply=False,
    )
    return replace(base, **overrides)  # type: ignore[arg-type]


def _by_id(facts: AppealFacts) -> dict[str, Defence]:
    return {
        defence.id: defence
        for defence in evaluate_defences(facts, lookup(facts.contravention_code))
    }


def test_every_template_is_evaluated_in_declaration_order() -> None:
    facts = _facts()

    evaluated = evaluate_defences(facts, lookup("06"))

    assert [defence.id for defence in evaluated] == [t.id for t in DEFENCE_TEMPLATES]
    assert not any(defence.applicable for defence in evaluated)
    assert all(defence.reasoning for defence in evaluated)


def test_paid_until_within_ten_minutes_makes_grace_period_applicable() -> None:
    facts = _facts(paid=True, paid_until=time(14, 0), issue_datetime=datetime(2026, 3, 4, 14, 9))

    grace = evaluate_defences(facts, lookup("06"))[4]

    assert grace.id == "grace_period"
    assert grace.applicable is True
    assert grace.strength is Strength.HIGH


def test_exact_grace_boundary_is_inclusive() -> None:
    facts = _facts(paid=True, paid_until=time(14, 0), issue_datetime=datetime(2026, 3, 4, 14, 10))

    assert evaluate_defences(facts, lookup("06"))[4].applicable is True


def test_ticket_after_grace_window_is_not_applicable() -> None:
    facts = _facts(paid=True, paid_until=time(14, 0), issue_datetime=datetime(2026, 3, 4, 14, 11))

    grace = evaluate_defences(facts, lookup("06"))[4]

    assert grace.applicable is False
    assert grace.strength is Strength.MEDIUM
    assert "more than 10 minutes" in grace.reasoning


def test_grace_period_requires_eligible_category() -> None:
    facts = _facts(
        contravention_code="02",
        paid=True,
        paid_until=time(14, 0),
        issue_datetime=datetime(2026, 3, 4, 14, 5),
    )

    grace = evaluate_defences(facts, lookup("02"))[4]

    assert grace.applicable is False
    assert "restricted_street" in grace.reasoning


def test_grace_period_requires_reported_payment() -> None:
    facts = _facts(paid=False, paid_until=time(14, 0))

    assert evaluate_defences(facts, lookup("06"))[4].applicable is False


def test_grace_period_end_anchors_clock_to_issue_date() -> None:
    issued = datetime(2026, 3, 4, 14, 9, tzinfo=UTC)

    assert grace_period_end(issue_datetime=issued, paid_until_clock=time(14, 0)) == datetime(
        2026, 3, 4, 14, 10, tzinfo=UTC
    )


@pytest.mark.parametrize(
    ("code", "expected"),
    [("25", Strength.HIGH), ("02", Strength.MEDIUM), ("00", Strength.MEDIUM)],
)
def test_loading_strength_depends_on_loading_category(code: str, expected: Strength) -> None:
    facts = _facts(contravention_code=code, loading_unloading=True)

    loading = evaluate_defences(facts, lookup(code))[0]

    assert loading.applicable is True
    assert loading.strength is expected


def test_missing_signage_and_markings_are_applicable() -> None:
    defences = _by_id(_facts(signage_visible=False, markings_visible=False))

    signage = defences["signage_issues"]
    markings = defences["bay_marking_issues"]
    assert signage.applicable is True
    assert signage.strength is Strength.HIGH
    assert markings.applicable is True
    assert markings.strength is Strength.MEDIUM


def test_observation_claim_applies_for_unknown_codes() -> None:
    defences = _by_id(_facts(contravention_code="00", no_observation_period=True))

    assert defences["observation_period"].applicable is True


def test_exemption_flags_map_to_their_defences() -> None:
    defences = _by_id(
        _facts(
            passenger_dropoff=True,
            blue_badge=True,
            medical_emergency=True,
            late_council_reply=True,
            paid=True,
        )
    )

    applicable = {key for key, defence in defences.items() if defence.applicable}
    assert applicable == {
        "passenger_dropoff",
        "blue_badge",
        "medical_emergency",
        "late_council_reply",
        "payment_made",
    }


def test_evaluation_does_not_mutate_templates() -> None:
    before = DEFENCE_TEMPLATES

    evaluate_defences(_facts(paid=True, paid_until=time(14, 5)), lookup("06"))

    assert DEFENCE_TEMPLATES == before
    assert DEFENCE_TEMPLATES[4].strength is Strength.MEDIUM


def test_payload_contains_display_fields() -> None:
    payload = evaluate_defences(_facts(blue_badge=True), lookup("40"))[2].to_payload()

    assert payload == {
        "id": "blue_badge",
        "name": "Blue Badge Holder",
        "description": "You are a registered Blue Badge holder",
        "strength": "high",
        "category": "exemption",
        "evidence": ["blue_badge", "clock", "permit_display"],
        "applicable": True,
        "reasoning": "User confirmed they hold a Blue Badge",
    }
