from __future__ import annotations

from pathlib import Path

import apps.api.main as api_main
import apps.worker.main as worker_main
from appeal_automation.application.services.appeal_workflow_service import AppealWorkflowService
from appeal_automation.config.settings import Settings
from appeal_automation.infrastructure import workflow_wiring
from appeal_automation.infrastructure.db.session import create_session_factory


def _settings(database_url: str) -> Settings:
    return Settings.model_construct(
        database_url=database_url,
        payment_webhook_secret="secret",
        llm_runtime_mode="deterministic",
        openai_api_key=None,
        openai_model_letter="gpt-4o-mini",
        openai_model_ocr="gpt-4o-mini",
        openai_temperature=None,
        openai_timeout_seconds=60.0,
        letter_generation_timeout_seconds=90.0,
        ocr_timeout_seconds=45.0,
        worker_poll_interval_seconds=0.0,
        letter_job_max_attempts=5,
        log_level="INFO",
    )


def test_workflow_service_is_built_from_settings(tmp_path: Path) -> None:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'wiring.db'}"

    service = workflow_wiring.build_workflow_service(
        settings=_settings(database_url),
        session_factory=create_session_factory(database_url),
    )

    assert isinstance(service, AppealWorkflowService)


def test_api_and_worker_share_one_workflow_builder() -> None:
    assert api_main.build_workflow_service is workflow_wiring.build_workflow_service
    assert worker_main.build_workflow_service is workflow_wiring.build_workflow_service
