"""Rank evaluated defences into primary, supporting and fallback guidance."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Final

from appeal_automation.domain.appeal_facts import AppealFacts
from appeal_automation.domain.contravention_rules import ContraventionRule, lookup
from appeal_automation.domain.defences import Defence, evaluate_defences

MAX_SUPPORTING_DEFENCES: Final[int] = 3
GENERAL_DEFENCES: Final[tuple[str, ...]] = (
    "Request CEO notes and photos to verify observation period and signage",
    "Check if the PCN complies with all legal requirements",
    "Verify the location matches the actual parking restrictions",
    "Challenge if the penalty amount exceeds the allowed maximum",
)


@dataclass(frozen=True)
class DefenceAnalysis:
    """Ranked outcome of one analysis pass; no primary defence is a valid result."""

    contravention_category: str
    primary: Defence | None
    supporting: tuple[Defence, ...]
    applicable: tuple[Defence, ...]
    general_defences: tuple[str, ...]

    @property
    def has_specific_defence(self) -> bool:
        return self.primary is not None

    def to_payload(self) -> dict[str, Any]:
        return {
            "contravention_category": self.contravention_category,
            "primary_defence": self.primary.to_payload() if self.primary else None,
            "supporting_defences": [defence.to_payload() for defence in self.supporting],
            "applicable_defences": [defence.to_payload() for defence in self.applicable],
            "general_defences": list(self.general_defences),
        }


def rank_defences(candidates: Sequence[Defence], rule: ContraventionRule) -> DefenceAnalysis:
    """Select primary and up to three supporting defences, strongest first."""

    # sorted() is stable, so equal strengths keep template declaration order.
    ranked = tuple(
        sorted(
            (defence for defence in candidates if defence.applicable),
            key=lambda defence: defence.strength.rank,
            reverse=True,
        )
    )
    if not ranked:
        return DefenceAnalysis(
            contravention_category=rule.category,
            primary=None,
            supporting=(),
            applicable=(),
            general_defences=GENERAL_DEFENCES,
        )

    return DefenceAnalysis(
        contravention_category=rule.category,
        primary=ranked[0],
        supporting=ranked[1 : 1 + MAX_SUPPORTING_DEFENCES],
        applicable=ranked,
        general_defences=(),
    )


def analyze_appeal(facts: AppealFacts) -> DefenceAnalysis:
    """Run registry lookup, evaluation and ranking for one fact set."""

    rule = lookup(facts.contravention_code)
    return rank_defences(evaluate_defences(facts, rule), rule)
