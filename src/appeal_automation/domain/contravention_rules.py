"""Static contravention code registry with a conservative default for unknown codes."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final

UNKNOWN_CATEGORY = "unknown"
_UNKNOWN_EXPLANATION = (
    "This contravention code indicates a parking violation. "
    "Please verify the exact meaning with the issuing authority."
)


@dataclass(frozen=True)
class ContraventionRule:
    """Category metadata attached to one contravention code."""

    code: str
    category: str
    grace_period_eligible: bool
    observation_required: bool
    common_defences: frozenset[str]


def _rule(
    code: str,
    category: str,
    common_defences: tuple[str, ...],
    *,
    grace: bool = False,
) -> tuple[str, ContraventionRule]:
    return code, ContraventionRule(
        code=code,
        category=category,
        grace_period_eligible=grace,
        observation_required=True,
        common_defences=frozenset(common_defences),
    )


_RULES: Final[Mapping[str, ContraventionRule]] = MappingProxyType(
    dict(
        [
            _rule("01", "restricted_street", ("loading", "emergency", "signage")),
            _rule("02", "restricted_street", ("loading", "emergency", "signage")),
            _rule("06", "pay_display", ("payment", "machine_fault", "signage"), grace=True),
            _rule(
                "11",
                "payment_required",
                ("payment", "machine_fault", "grace_period"),
                grace=True,
            ),
            _rule("12", "permit_required", ("permit", "visitor_permit", "signage")),
            _rule("16", "permit_required", ("permit", "bay_marking", "signage")),
            _rule("19", "permit_required", ("permit", "virtual_permit", "system_error")),
            _rule(
                "21",
                "suspended_bay",
                ("suspension_signage", "suspension_notice", "emergency"),
            ),
            _rule("22", "reparking", ("different_purpose", "loading", "emergency")),
            _rule("23", "vehicle_type", ("vehicle_classification", "signage", "bay_marking")),
            _rule("24", "parking_position", ("bay_marking", "obstruction", "space_availability")),
            _rule(
                "25",
                "loading_restriction",
                ("loading", "observation_period", "signage"),
                grace=True,
            ),
            _rule("26", "footway_parking", ("marked_bay", "signage", "emergency")),
            _rule("27", "dropped_footway", ("footway_marking", "signage", "emergency")),
            _rule(
                "30",
                "overtime_parking",
                ("grace_period", "payment_error", "machine_fault"),
                grace=True,
            ),
            _rule("40", "disabled_bay", ("blue_badge", "permit_display", "signage")),
            _rule("47", "bus_stop", ("boarded_passengers", "emergency", "signage")),
            _rule("48", "bus_stop", ("boarded_passengers", "emergency", "signage")),
            _rule("50", "traffic_flow", ("emergency", "direction", "signage")),
            _rule("61", "engine_running", ("loading", "passenger_dropoff", "short_period")),
            _rule("62", "footway_parking", ("marked_bay", "signage", "emergency")),
            _rule("73", "taxi_rank", ("taxi_license", "emergency", "signage")),
            _rule("74", "cycle_lane", ("emergency", "signage", "lane_marking")),
            _rule("80", "cycle_lane", ("emergency", "signage", "lane_marking")),
            _rule("85", "pedestrian_zone", ("loading", "permit", "emergency")),
            _rule("86", "pedestrian_zone", ("loading", "permit", "emergency")),
            _rule("87", "restricted_area", ("permit", "signage", "emergency")),
            _rule("91", "police_bay", ("emergency_vehicle", "police_business", "signage")),
            _rule("93", "vehicle_restriction", ("vehicle_type", "signage", "emergency")),
            _rule("95", "clearway", ("emergency", "breakdown", "signage")),
            _rule("96", "cycle_track", ("emergency", "signage", "track_marking")),
            _rule("97", "red_route", ("loading", "emergency", "signage")),
            _rule("99", "specific_vehicle", ("vehicle_type", "permit", "signage")),
        ]
    )
)

_EXPLANATIONS: Final[Mapping[str, str]] = MappingProxyType(
    {
        "01": "Parked in a restricted street during prescribed hours",
        "02": (
            "Parked or loading/unloading in a restricted street where waiting and "
            "loading/unloading restrictions are in force"
        ),
        "06": "Parked without clearly displaying a valid pay & display ticket or voucher",
        "11": "Parked without payment of the parking charge",
        "12": "Parked in a residents' zone or space without a valid permit",
        "16": "Parked in a permit space without displaying a valid permit",
        "19": "Parked in a residents' bay without a valid virtual permit or physical permit",
        "21": "Parked in a suspended bay/space or area",
        "22": "Re-parked in the same parking place within one hour of leaving",
        "23": "Parked in a parking place or area not designated for that class of vehicle",
        "24": "Not parked correctly within the markings of the bay or space",
        "25": "Parked in a loading place during restricted hours without loading",
        "26": (
            "Vehicle parked more than 50cm from the edge of the carriageway and not "
            "within a designated parking place"
        ),
        "27": "Parked adjacent to a dropped footway",
        "30": "Parked for longer than permitted",
        "40": (
            "Parked in a designated disabled person's parking place without displaying "
            "a valid disabled person's badge"
        ),
        "47": "Stopped on a restricted bus stop or stand",
        "48": "Stopped on a restricted bus stop or stand during prohibited hours",
        "50": "Parked against the flow of traffic",
        "61": "Parked with engine running where prohibited",
        "62": (
            "Parked with one or more wheels on or over a footpath or any part of a road "
            "other than a carriageway"
        ),
        "73": "Parked in a taxi rank",
        "74": "Parked in a cycle lane",
        "80": "Parked in a mandatory cycle lane",
        "85": "Parked in a pedestrian zone",
        "86": "Parked in a pedestrian zone during restricted hours",
        "87": "Parked in a restricted area during prescribed hours",
        "91": "Parked in a bay marked for police vehicles",
        "93": "Parked contrary to a prohibition on certain types of vehicle",
        "95": "Parked on a clearway",
        "96": "Parked in a cycle track",
        "97": "Parked on red route",
        "99": "Parked in a bay reserved for specific vehicles (e.g., car club, electric vehicles)",
    }
)


def _normalize_code(code: str | None) -> str:
    if code is None:
        return ""
    return code.strip()


def lookup(code: str | None) -> ContraventionRule:
    """Return the rule for a contravention code, or the unknown-code default."""

    normalized = _normalize_code(code)
    rule = _RULES.get(normalized)
    if rule is not None:
        return rule
    return ContraventionRule(
        code=normalized,
        category=UNKNOWN_CATEGORY,
        grace_period_eligible=False,
        observation_required=True,
        common_defences=frozenset(),
    )


def explain(code: str | None) -> str:
    """Return a plain-English explanation for a contravention code."""

    return _EXPLANATIONS.get(_normalize_code(code), _UNKNOWN_EXPLANATION)


def known_codes() -> tuple[str, ...]:
    """Return registered contravention codes in ascending order."""

    return tuple(sorted(_RULES))
