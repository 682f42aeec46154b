from dataclasses import dataclass
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env in the project root: app/core/config.py -> app/core -> app -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"

MODEL_PREFIX = "models/"


class Settings(BaseSettings):
    gemini_api_key: str = ""
    # Accepts "gemini-1.5-pro-002" or "models/gemini-1.5-pro-002"
    gemini_model: str = "models/gemini-1.5-pro-002"
    # Comma-separated; tried in order after the primary model
    gemini_fallback_models: str = "gemini-2.5-flash,gemini-2.0-flash,gemini-1.5-flash"
    gemini_api_base: str = "https://generativelanguage.googleapis.com"
    # qualifiesForPublish = score >= score_threshold
    score_threshold: float = 10.0
    upload_max_mb: int = 500
    # Per-stage deadlines, seconds
    staging_init_timeout: float = 60.0
    staging_transfer_timeout: float = 600.0
    readiness_timeout: float = 45.0
    readiness_interval: float = 1.2
    readiness_request_timeout: float = 10.0
    evaluation_timeout: float = 480.0
    cleanup_timeout: float = 30.0
    # Rubric report language (es, en, tr, ...) and optional JSON rubric override
    report_lang: str = "es"
    rubric_path: str = ""
    # YouTube publishing: either a ready bearer token or refresh-token credentials
    youtube_access_token: str = ""
    youtube_client_id: str = ""
    youtube_client_secret: str = ""
    youtube_refresh_token: str = ""
    youtube_privacy_status: str = "unlisted"
    youtube_category_id: str = "27"
    publish_timeout: float = 600.0
    database_url: str = "sqlite:///./analyzer.db"
    # CORS: comma-separated origins; in production e.g. https://panel.example.com
    cors_origins: str = "*"
    # Per-IP requests per minute on /analyzeVideo and /publishVideo
    rate_limit_per_minute: int = 30
    environment: str = "development"
    # Root/app log level; provider clients follow it unless provider_log_level is set
    log_level: str = "INFO"
    provider_log_level: str = ""

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("gemini_api_key", "youtube_access_token", "youtube_refresh_token", mode="before")
    @classmethod
    def strip_secret(cls, v: str | None) -> str:
        """Trims whitespace left over from copy/paste."""
        return (v or "").strip()


settings = Settings()


def normalize_model_id(raw: str) -> str:
    raw = (raw or "").strip()
    if not raw:
        return ""
    return raw if raw.startswith(MODEL_PREFIX) else MODEL_PREFIX + raw


def build_model_candidates(primary: str, fallbacks: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    """
    Primary model followed by the fallback set, normalized to "models/..." with
    duplicates removed (first occurrence wins).
    """
    seen: set[str] = set()
    out: list[str] = []
    for raw in [primary, *fallbacks]:
        model = normalize_model_id(raw)
        if model and model not in seen:
            seen.add(model)
            out.append(model)
    return tuple(out)


def get_model_candidates() -> tuple[str, ...]:
    fallbacks = [m for m in (settings.gemini_fallback_models or "").split(",") if m.strip()]
    return build_model_candidates(settings.gemini_model, fallbacks)


def is_gemini_configured() -> bool:
    return bool(settings.gemini_api_key)


def is_publish_configured() -> bool:
    """Static token, or all three refresh-token credentials."""
    if settings.youtube_access_token:
        return True
    return all(
        (v or "").strip()
        for v in (settings.youtube_client_id, settings.youtube_client_secret, settings.youtube_refresh_token)
    )


@dataclass(frozen=True)
class PipelineConfig:
    """Values the pipeline runs with; built once, never read from the environment inside the algorithm."""

    score_threshold: float = 10.0
    model_candidates: tuple[str, ...] = ()
    max_upload_bytes: int = 500 * 1024 * 1024
    staging_init_timeout: float = 60.0
    staging_transfer_timeout: float = 600.0
    readiness_timeout: float = 45.0
    readiness_interval: float = 1.2
    readiness_request_timeout: float = 10.0
    evaluation_timeout: float = 480.0
    cleanup_timeout: float = 30.0
    publish_timeout: float = 600.0
    report_lang: str = "es"

    @classmethod
    def from_settings(cls, s: Settings) -> "PipelineConfig":
        fallbacks = [m for m in (s.gemini_fallback_models or "").split(",") if m.strip()]
        return cls(
            score_threshold=s.score_threshold,
            model_candidates=build_model_candidates(s.gemini_model, fallbacks),
            max_upload_bytes=s.upload_max_mb * 1024 * 1024,
            staging_init_timeout=s.staging_init_timeout,
            staging_transfer_timeout=s.staging_transfer_timeout,
            readiness_timeout=s.readiness_timeout,
            readiness_interval=s.readiness_interval,
            readiness_request_timeout=s.readiness_request_timeout,
            evaluation_timeout=s.evaluation_timeout,
            cleanup_timeout=s.cleanup_timeout,
            publish_timeout=s.publish_timeout,
            report_lang=s.report_lang,
        )
