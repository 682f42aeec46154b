from functools import lru_cache

from fastapi import Depends, HTTPException, status

from app.core.config import PipelineConfig, is_gemini_configured, is_publish_configured, settings
from app.core.database import engine
from app.services.analyze import GeminiEvaluator
from app.services.gemini_files import GeminiFilesClient
from app.services.ledger import StatusLedger
from app.services.pipeline import AnalysisPipeline
from app.services.publish import PublishGate
from app.services.rubric import RubricTemplate, load_rubric
from app.services.youtube import YouTubeClient


@lru_cache
def get_pipeline_config() -> PipelineConfig:
    return PipelineConfig.from_settings(settings)


@lru_cache
def get_ledger() -> StatusLedger:
    return StatusLedger(engine)


@lru_cache
def get_rubric() -> RubricTemplate:
    return load_rubric(settings.rubric_path)


def get_pipeline(
    ledger: StatusLedger = Depends(get_ledger),
    config: PipelineConfig = Depends(get_pipeline_config),
    rubric: RubricTemplate = Depends(get_rubric),
) -> AnalysisPipeline:
    """Fresh provider clients per request; each job owns its HTTP session."""
    if not is_gemini_configured():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="GEMINI_API_KEY is not configured.",
        )
    files = GeminiFilesClient(settings.gemini_api_key, config, base_url=settings.gemini_api_base)
    evaluator = GeminiEvaluator(settings.gemini_api_key, config, rubric=rubric, base_url=settings.gemini_api_base)
    return AnalysisPipeline(ledger, files, evaluator, config)


def get_publish_gate(
    ledger: StatusLedger = Depends(get_ledger),
    config: PipelineConfig = Depends(get_pipeline_config),
) -> PublishGate:
    uploader = None
    if is_publish_configured():
        uploader = YouTubeClient(
            access_token=settings.youtube_access_token,
            client_id=settings.youtube_client_id,
            client_secret=settings.youtube_client_secret,
            refresh_token=settings.youtube_refresh_token,
            timeout=config.publish_timeout,
        )
    return PublishGate(
        ledger,
        uploader,
        default_privacy=settings.youtube_privacy_status,
        default_category=settings.youtube_category_id,
    )
