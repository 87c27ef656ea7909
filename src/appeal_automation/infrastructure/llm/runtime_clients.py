"""Build runtime LLM collaborators from the configured runtime mode."""

from __future__ import annotations

from appeal_automation.application.dto.letter_models import LetterCaseAnalysis
from appeal_automation.application.services.letter_drafting_service import LetterDraftingService
from appeal_automation.config.settings import Settings
from appeal_automation.infrastructure.llm.deterministic_client import DeterministicLlmClient
from appeal_automation.infrastructure.llm.llm_client import LlmClientPort, VisionLlmClientPort
from appeal_automation.infrastructure.llm.openai_client import OpenAiChatCompletionsClient


def build_letter_drafting_service(
    *,
    settings: Settings,
    analysis_client: LlmClientPort | None = None,
    letter_client: LlmClientPort | None = None,
) -> LetterDraftingService:
    """Compose the two-stage letter collaborator, filling in clients the caller omitted."""

    if settings.llm_runtime_mode == "provider":
        api_key = _require_api_key(settings)
        if analysis_client is None:
            analysis_client = OpenAiChatCompletionsClient(
                api_key=api_key,
                model=settings.openai_model_letter,
                temperature=settings.openai_temperature,
                response_schema_name="letter_case_analysis",
                response_schema=LetterCaseAnalysis.model_json_schema(),
                timeout_seconds=settings.openai_timeout_seconds,
            )
        if letter_client is None:
            letter_client = OpenAiChatCompletionsClient(
                api_key=api_key,
                model=settings.openai_model_letter,
                temperature=settings.openai_temperature,
                max_tokens=2000,
                timeout_seconds=settings.openai_timeout_seconds,
            )
    else:
        if analysis_client is None:
            analysis_client = DeterministicLlmClient(stage="letter_analysis")
        if letter_client is None:
            letter_client = DeterministicLlmClient(stage="letter")

    return LetterDraftingService(analysis_client=analysis_client, letter_client=letter_client)


def build_vision_client(*, settings: Settings) -> VisionLlmClientPort:
    """Return the OCR client for the configured runtime mode."""

    if settings.llm_runtime_mode == "provider":
        return OpenAiChatCompletionsClient(
            api_key=_require_api_key(settings),
            model=settings.openai_model_ocr,
            temperature=settings.openai_temperature,
            json_output=True,
            max_tokens=1000,
            timeout_seconds=settings.openai_timeout_seconds,
        )
    return DeterministicLlmClient(stage="ocr")


def _require_api_key(settings: Settings) -> str:
    api_key = settings.openai_api_key
    if api_key is None or not api_key.strip():
        raise ValueError("OPENAI_API_KEY is required when LLM_RUNTIME_MODE=provider")
    return api_key
