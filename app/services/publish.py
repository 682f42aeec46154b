"""Publish gate: score threshold eligibility and the secondary upload to YouTube."""
import logging
from typing import Protocol

from app.core.errors import (
    AlreadyPublishedError,
    EligibilityError,
    NotFoundError,
    PublishNotConfiguredError,
    PublishUploadError,
)
from app.models.analysis_job import (
    PUBLISH_ERROR,
    PUBLISH_UPLOADED,
    PUBLISH_UPLOADING,
    AnalysisJob,
)
from app.schemas.analyze import PublishMetadata
from app.services.ledger import StatusLedger
from app.services.youtube import PublishResult

logger = logging.getLogger(__name__)


class Uploader(Protocol):
    def upload(self, payload: bytes, mime_type: str, metadata: dict) -> PublishResult: ...


def evaluate_eligibility(score: float, threshold: float) -> bool:
    return float(score) >= float(threshold)


def _recorded_score(job: AnalysisJob) -> float | None:
    score = (job.result or {}).get("score")
    return float(score) if isinstance(score, (int, float)) else None


class PublishGate:
    def __init__(
        self,
        ledger: StatusLedger,
        uploader: Uploader | None,
        default_privacy: str = "unlisted",
        default_category: str = "27",
    ) -> None:
        self._ledger = ledger
        self._uploader = uploader
        self._default_privacy = default_privacy
        self._default_category = default_category

    def check(self, job_id: str) -> AnalysisJob:
        """Preconditions, in order: job exists, qualifies, not yet uploaded."""
        job = self._ledger.get(job_id)
        if job is None:
            raise NotFoundError(job_id)
        if job.qualifies_for_publish is not True:
            raise EligibilityError(_recorded_score(job), job.score_threshold)
        if job.publish_status == PUBLISH_UPLOADED:
            raise AlreadyPublishedError(job.publish_link)
        return job

    def _target_metadata(self, job: AnalysisJob, metadata: PublishMetadata) -> dict:
        summary = (job.result or {}).get("summary") or ""
        return {
            "title": metadata.title or job.file_name or f"Analysis {job.id}",
            "description": metadata.description or summary,
            "tags": metadata.tags,
            "category_id": metadata.category_id or self._default_category,
            "privacy_status": metadata.privacy_status or self._default_privacy,
        }

    def publish(
        self,
        job_id: str,
        payload: bytes,
        mime_type: str,
        metadata: PublishMetadata | None = None,
    ) -> PublishResult:
        job = self.check(job_id)
        if self._uploader is None:
            raise PublishNotConfiguredError("YouTube credentials are not configured")
        self._ledger.update_publish(job_id, publish_status=PUBLISH_UPLOADING, publish_error=None)
        try:
            result = self._uploader.upload(payload, mime_type, self._target_metadata(job, metadata or PublishMetadata()))
        except Exception as e:
            logger.exception("Publish of %s failed: %s", job_id, e)
            self._ledger.update_publish(job_id, publish_status=PUBLISH_ERROR, publish_error=str(e)[:2000] or type(e).__name__)
            if isinstance(e, (PublishUploadError, PublishNotConfiguredError)):
                raise
            raise PublishUploadError(str(e) or type(e).__name__) from e
        self._ledger.update_publish(
            job_id,
            publish_status=PUBLISH_UPLOADED,
            publish_link=result.link,
            publish_remote_id=result.remote_id,
            publish_error=None,
        )
        return result
