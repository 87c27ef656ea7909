"""Offline LLM client returning canned, schema-valid output per stage."""

from __future__ import annotations

import json
from typing import Literal

DeterministicStage = Literal["letter_analysis", "letter", "ocr"]

_LETTER_ANALYSIS = {
    "case_assessment": "The confirmed facts support a formal representation against the notice.",
    "key_legal_points": [
        "The enforcement authority must show the contravention occurred as alleged",
        "Any applicable exemption or procedural defect requires cancellation",
    ],
    "evidence_recommendations": [
        "Photographs of the location, signage and bay markings",
        "Copy of the penalty charge notice",
    ],
    "success_likelihood": "medium",
    "additional_advice": "Submit the representation within the discount period.",
}

_OCR_EXTRACTION = {
    "fields": {
        "issuer_type": "council",
        "issuer": "Example Borough Council",
        "pcn_number": "EB12345678",
        "vehicle_registration": "AB12CDE",
        "contravention_code": "06",
        "contravention_description": (
            "Parked without clearly displaying a valid pay & display ticket"
        ),
        "issue_datetime": "2024-01-15T14:09:00",
        "location": "High Street, Example Town",
    },
    "confidence": {
        "issuer_type": 0.9,
        "issuer": 0.8,
        "pcn_number": 0.95,
        "vehicle_registration": 0.9,
        "contravention_code": 0.95,
        "issue_datetime": 0.85,
        "location": 0.8,
    },
}


class DeterministicLlmClient:
    """Runtime client for `LLM_RUNTIME_MODE=deterministic`; never calls the network."""

    def __init__(self, *, stage: DeterministicStage) -> None:
        self._stage = stage

    @property
    def model_name(self) -> str:
        return f"deterministic-{self._stage}"

    async def complete(self, *, system_prompt: str, user_prompt: str) -> str:
        if self._stage == "letter_analysis":
            return json.dumps(_LETTER_ANALYSIS)
        if self._stage == "ocr":
            return json.dumps(_OCR_EXTRACTION)
        return _render_letter(user_prompt)

    async def complete_with_image(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        image_bytes: bytes,
        media_type: str,
    ) -> str:
        return await self.complete(system_prompt=system_prompt, user_prompt=user_prompt)


def _render_letter(user_prompt: str) -> str:
    return (
        "Dear Sir or Madam,\n\n"
        "I am writing to make formal representations against the penalty notice "
        "described below and to request that it is cancelled.\n\n"
        f"{user_prompt.strip()}\n\n"
        "For the reasons set out above I respectfully ask that the notice is cancelled.\n\n"
        "Yours faithfully,"
    )
