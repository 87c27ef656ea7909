"""Runtime settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

NonEmptyStr = Annotated[str, Field(min_length=1)]
NonNegativeFloat = Annotated[float, Field(ge=0.0)]
PositiveFloat = Annotated[float, Field(gt=0.0)]
PositiveInt = Annotated[int, Field(gt=0)]
TemperatureFloat = Annotated[float, Field(ge=0.0, le=2.0)]


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: NonEmptyStr = Field(validation_alias="DATABASE_URL")
    payment_webhook_secret: NonEmptyStr = Field(validation_alias="PAYMENT_WEBHOOK_SECRET")
    llm_runtime_mode: Literal["deterministic", "provider"] = Field(
        default="deterministic",
        validation_alias="LLM_RUNTIME_MODE",
    )
    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_model_letter: NonEmptyStr = Field(
        default="gpt-4o-mini",
        validation_alias="OPENAI_MODEL_LETTER",
    )
    openai_model_ocr: NonEmptyStr = Field(
        default="gpt-4o-mini",
        validation_alias="OPENAI_MODEL_OCR",
    )
    openai_temperature: TemperatureFloat | None = Field(
        default=None,
        validation_alias="OPENAI_TEMPERATURE",
    )
    openai_timeout_seconds: NonNegativeFloat = Field(
        default=60.0,
        validation_alias="OPENAI_TIMEOUT_SECONDS",
    )
    letter_generation_timeout_seconds: PositiveFloat = Field(
        default=90.0,
        validation_alias="LETTER_GENERATION_TIMEOUT_SECONDS",
    )
    ocr_timeout_seconds: PositiveFloat = Field(
        default=45.0,
        validation_alias="OCR_TIMEOUT_SECONDS",
    )
    worker_poll_interval_seconds: NonNegativeFloat = Field(
        default=1.0,
        validation_alias="WORKER_POLL_INTERVAL_SECONDS",
    )
    letter_job_max_attempts: PositiveInt = Field(
        default=5,
        validation_alias="LETTER_JOB_MAX_ATTEMPTS",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @model_validator(mode="after")
    def _require_api_key_in_provider_mode(self) -> "Settings":
        if self.llm_runtime_mode == "provider" and not (self.openai_api_key or "").strip():
            raise ValueError("OPENAI_API_KEY is required when LLM_RUNTIME_MODE=provider")
        return self


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]
