"""Pydantic schema for the structured case analysis produced before letter drafting."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class LetterCaseAnalysis(BaseModel):
    model_config = ConfigDict(extra="forbid")

    case_assessment: str = Field(min_length=1)
    key_legal_points: list[str]
    evidence_recommendations: list[str]
    success_likelihood: Literal["low", "medium", "high"]
    additional_advice: str
