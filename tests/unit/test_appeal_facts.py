from __future__ import annotations

from datetime import UTC, datetime, time
from typing import Any

import pytest

from appeal_automation.domain.appeal_facts import (
    FLAG_FIELDS,
    IncompleteAppealFactsError,
    IssuerType,
    facts_to_payload,
    parse_appeal_facts,
    parse_paid_until,
)


def _complete_raw(**overrides: Any) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "issuer_type": "council",
        "contravention_code": "06",
        "issue_datetime": "2026-03-04T14:09:00",
        "paid": True,
        "paid_until": "14:00",
        "payment_method": "app",
        "permit_type": None,
        "loading_unloading": False,
        "passenger_dropoff": False,
        "blue_badge": False,
        "medical_emergency": False,
        "signage_visible": True,
        "markings_visible": True,
        "no_observation_period": False,
        "late_council_reply": False,
    }
    raw.update(overrides)
    return raw


def test_complete_facts_parse_into_typed_value() -> None:
    facts = parse_appeal_facts(_complete_raw(contravention_code=" 06 ", issuer_type="Council"))

    assert facts.issuer_type is IssuerType.COUNCIL
    assert facts.contravention_code == "06"
    assert facts.issue_datetime == datetime(2026, 3, 4, 14, 9)
    assert facts.paid_until == time(14, 0)
    assert facts.payment_method == "app"
    assert facts.permit_type is None
    assert facts.paid is True
    assert facts.signage_visible is True


def test_missing_fields_are_reported_together_in_declaration_order() -> None:
    raw = _complete_raw(issuer_type="police", contravention_code="  ")
    del raw["issue_datetime"]
    raw["signage_visible"] = None
    raw["blue_badge"] = "yes"

    with pytest.raises(IncompleteAppealFactsError) as exc_info:
        parse_appeal_facts(raw)

    assert exc_info.value.missing_fields == (
        "issuer_type",
        "contravention_code",
        "issue_datetime",
        "blue_badge",
        "signage_visible",
    )
    assert "incomplete appeal facts" in str(exc_info.value)


def test_empty_payload_lists_every_required_field() -> None:
    with pytest.raises(IncompleteAppealFactsError) as exc_info:
        parse_appeal_facts({})

    assert exc_info.value.missing_fields == (
        "issuer_type",
        "contravention_code",
        "issue_datetime",
        *FLAG_FIELDS,
    )


def test_malformed_paid_until_is_reported() -> None:
    with pytest.raises(IncompleteAppealFactsError) as exc_info:
        parse_appeal_facts(_complete_raw(paid_until="quarter past two"))

    assert exc_info.value.missing_fields == ("paid_until",)


def test_unparseable_issue_datetime_is_reported() -> None:
    with pytest.raises(IncompleteAppealFactsError) as exc_info:
        parse_appeal_facts(_complete_raw(issue_datetime="yesterday"))

    assert exc_info.value.missing_fields == ("issue_datetime",)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, None),
        ("", None),
        ("  ", None),
        ("09:30", time(9, 30)),
        ("09:30:15", time(9, 30, 15)),
        (time(8, 0), time(8, 0)),
    ],
)
def test_parse_paid_until_accepts_clock_times(value: object, expected: time | None) -> None:
    assert parse_paid_until(value) == expected


def test_parse_paid_until_rejects_non_strings() -> None:
    with pytest.raises(ValueError):
        parse_paid_until(1400)


def test_payload_shape_parses_back_to_equal_facts() -> None:
    facts = parse_appeal_facts(_complete_raw(issuer_type="private"))

    payload = facts_to_payload(facts)

    assert payload["issuer_type"] == "private"
    assert payload["paid_until"] == "14:00"
    assert parse_appeal_facts(payload) == facts


@pytest.mark.parametrize("value", ["14:00+01:00", "14:00Z", time(14, 0, tzinfo=UTC)])
def test_parse_paid_until_rejects_clock_times_with_an_offset(value: object) -> None:
    with pytest.raises(ValueError, match="UTC offset"):
        parse_paid_until(value)


def test_paid_until_with_offset_is_reported_as_unusable() -> None:
    with pytest.raises(IncompleteAppealFactsError) as exc_info:
        parse_appeal_facts(_complete_raw(paid_until="14:00+01:00"))

    assert exc_info.value.missing_fields == ("paid_until",)
