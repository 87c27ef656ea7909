"""Two-stage LLM letter drafting: structured case analysis, then the letter itself."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from appeal_automation.application.dto.letter_models import LetterCaseAnalysis
from appeal_automation.application.ports.letter_generator_port import (
    LetterDraft,
    LetterDraftRequest,
    LetterGenerationError,
    LetterGeneratorPort,
)
from appeal_automation.application.services.llm_json_parser import (
    LlmJsonParseError,
    decode_llm_json_object,
)
from appeal_automation.domain.appeal_facts import FLAG_FIELDS
from appeal_automation.infrastructure.llm.llm_client import LlmClientPort
from appeal_automation.infrastructure.llm.openai_client import OpenAiAdapterError

logger = logging.getLogger(__name__)

_ANALYSIS_SYSTEM_PROMPT = (
    "You are a UK parking appeals specialist. Analyse the appeal case using only the "
    "confirmed facts provided. Council notices fall under the Traffic Management Act 2004; "
    "private notices under POFA 2012 and the BPA/IPC codes of practice. Never invent facts "
    "or evidence and be realistic about the chance of success. Return ONLY a JSON object "
    "with keys case_assessment (string), key_legal_points (list of strings), "
    "evidence_recommendations (list of strings), success_likelihood (low|medium|high) "
    "and additional_advice (string)."
)

_LETTER_SYSTEM_PROMPT = (
    "You are a professional UK parking appeal letter writer. Draft a formal, persuasive "
    "appeal letter in UK English, respectful but firm, of 300 to 500 words. Lead with the "
    "primary defence, follow with the supporting arguments, include every relevant "
    "confirmed fact and never invent facts or evidence. Structure: reference (PCN number), "
    "date, recipient, subject line, salutation, introduction, main body, request for "
    "cancellation, formal closing and signature block. Return only the letter text."
)

_FLAG_LABELS: dict[str, str] = {
    "paid": "Payment made",
    "loading_unloading": "Loading/unloading",
    "passenger_dropoff": "Passenger drop-off",
    "blue_badge": "Blue Badge holder",
    "medical_emergency": "Medical emergency",
    "signage_visible": "Signage visible",
    "markings_visible": "Markings visible",
    "no_observation_period": "No observation period",
    "late_council_reply": "Late council reply",
}


class LetterDraftingService(LetterGeneratorPort):
    """Letter collaborator backed by chat-completion clients."""

    def __init__(self, *, analysis_client: LlmClientPort, letter_client: LlmClientPort) -> None:
        self._analysis_client = analysis_client
        self._letter_client = letter_client

    async def generate(self, request: LetterDraftRequest) -> LetterDraft:
        """Return letter text plus the validated case analysis used to write it."""

        case_summary = _render_case_summary(request)
        analysis = await self._analyse(case_id=str(request.case_id), case_summary=case_summary)

        try:
            letter_text = await self._letter_client.complete(
                system_prompt=_LETTER_SYSTEM_PROMPT,
                user_prompt=_render_letter_prompt(case_summary=case_summary, analysis=analysis),
            )
        except OpenAiAdapterError as error:
            raise LetterGenerationError(f"letter stage failed: {error}") from error

        letter_text = letter_text.strip()
        if not letter_text:
            raise LetterGenerationError("letter stage returned empty text")

        return LetterDraft(letter_text=letter_text, analysis=analysis.model_dump(mode="json"))

    async def _analyse(self, *, case_id: str, case_summary: str) -> LetterCaseAnalysis:
        try:
            raw_response = await self._analysis_client.complete(
                system_prompt=_ANALYSIS_SYSTEM_PROMPT,
                user_prompt=f"Please analyse this parking appeal case:\n\n{case_summary}",
            )
        except OpenAiAdapterError as error:
            raise LetterGenerationError(f"analysis stage failed: {error}") from error

        try:
            decoded = decode_llm_json_object(raw_response)
            analysis = LetterCaseAnalysis.model_validate(decoded)
        except (LlmJsonParseError, ValidationError) as error:
            logger.warning("letter_analysis_invalid case_id=%s error=%s", case_id, error)
            raise LetterGenerationError("analysis stage returned an invalid analysis") from error

        return analysis


def _render_case_summary(request: LetterDraftRequest) -> str:
    facts = request.facts
    ticket = request.ticket
    vehicle = " ".join(
        str(value)
        for value in (
            ticket.get("vehicle_make"),
            ticket.get("vehicle_model"),
            ticket.get("vehicle_colour"),
        )
        if value
    )
    lines = [
        "APPEAL DETAILS:",
        f"- PCN Number: {_text(ticket.get('pcn_number'))}",
        f"- Issuer: {_text(ticket.get('issuer'))} ({_text(facts.get('issuer_type'))})",
        f"- Vehicle: {_text(ticket.get('vehicle_registration'))} ({vehicle or 'not provided'})",
        (
            f"- Contravention: {_text(facts.get('contravention_code'))} - "
            f"{_text(ticket.get('contravention_description'))}"
        ),
        f"- Category: {_text(request.contravention_category)}",
        f"- Date & Time: {_text(facts.get('issue_datetime'))}",
        f"- Location: {_text(ticket.get('location'))}",
        "",
        _render_primary_defence(request.primary_defence),
        "",
        "SUPPORTING DEFENCES:",
        *(_render_defence_line(defence) for defence in request.supporting_defences),
    ]
    if not request.supporting_defences:
        lines.append("- none")
    if request.general_defences:
        lines.extend(["", "GENERAL PROCEDURAL POINTS:"])
        lines.extend(f"- {item}" for item in request.general_defences)

    lines.extend(["", "KEY FACTORS:"])
    for name in FLAG_FIELDS:
        label = _FLAG_LABELS[name]
        answer = "Yes" if facts.get(name) else "No"
        if name == "paid" and facts.get(name) and facts.get("paid_until"):
            answer = f"Yes (until {facts['paid_until']})"
        lines.append(f"- {label}: {answer}")
    lines.extend(["", f"Additional notes: {_text(ticket.get('additional_notes'), 'None')}"])
    return "\n".join(lines)


def _render_primary_defence(defence: Mapping[str, Any] | None) -> str:
    if defence is None:
        return "PRIMARY DEFENCE: none identified; rely on the general procedural points."
    return (
        f"PRIMARY DEFENCE: {defence.get('name')}\n"
        f"- Description: {defence.get('description')}\n"
        f"- Reasoning: {defence.get('reasoning')}\n"
        f"- Strength: {defence.get('strength')}"
    )


def _render_defence_line(defence: Mapping[str, Any]) -> str:
    return f"- {defence.get('name')}: {defence.get('description')}"


def _render_letter_prompt(*, case_summary: str, analysis: LetterCaseAnalysis) -> str:
    return (
        "Please draft a formal parking appeal letter for this case.\n\n"
        f"{case_summary}\n\n"
        "CASE ANALYSIS:\n"
        f"- Assessment: {analysis.case_assessment}\n"
        f"- Success likelihood: {analysis.success_likelihood}\n"
        f"- Key legal points: {'; '.join(analysis.key_legal_points)}\n"
        f"- Evidence needed: {'; '.join(analysis.evidence_recommendations)}"
    )


def _text(value: object, default: str = "not provided") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default
