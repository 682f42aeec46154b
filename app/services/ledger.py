"""Status ledger over the analysis_jobs table.

Writes are merges: only the fields a write names are touched.  One short
session per write, so concurrent jobs never share a session.
"""
import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.engine import Engine
from sqlmodel import Session

from app.core.database import as_utc, utcnow
from app.core.errors import LedgerStateError, NotFoundError
from app.models.analysis_job import (
    JOB_DONE,
    JOB_ERROR,
    JOB_PROCESSING,
    PUBLISH_NOT_APPLICABLE,
    PUBLISH_PENDING,
    PUBLISH_UPLOADED,
    AnalysisJob,
)

logger = logging.getLogger(__name__)

PUBLISH_FIELDS = frozenset({"publish_status", "publish_link", "publish_remote_id", "publish_error"})
MAX_ERROR_LEN = 2000


class StatusLedger:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def _stamp(self, job: AnalysisJob) -> datetime:
        """updated_at strictly increases per write, even within one clock tick."""
        now = utcnow()
        previous = as_utc(job.updated_at)
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)
        job.updated_at = now
        return now

    def get(self, job_id: str) -> AnalysisJob | None:
        with Session(self._engine) as db:
            return db.get(AnalysisJob, job_id)

    def create_job(self, job_id: str, metadata: dict[str, Any] | None = None) -> AnalysisJob:
        """
        status=processing plus file metadata. An existing id (resubmission) keeps
        created_at; the previous analysis outcome is cleared. Publish fields survive
        only once uploaded, otherwise eligibility is decided again by this run.
        """
        metadata = metadata or {}
        with Session(self._engine) as db:
            job = db.get(AnalysisJob, job_id)
            if job is None:
                job = AnalysisJob(id=job_id, publish_status=PUBLISH_NOT_APPLICABLE)
            now = self._stamp(job)
            if job.created_at is None:
                job.created_at = now
            job.status = JOB_PROCESSING
            job.result = None
            job.error = None
            job.duration_ms = None
            job.qualifies_for_publish = None
            job.score_threshold = None
            if job.publish_status != PUBLISH_UPLOADED:
                job.publish_status = PUBLISH_NOT_APPLICABLE
                job.publish_error = None
            for key in ("file_name", "file_size", "mime_type"):
                if key in metadata:
                    setattr(job, key, metadata[key])
            db.add(job)
            db.commit()
            db.refresh(job)
            logger.info("Job %s created (processing)", job_id)
            return job

    def _terminal(self, job_id: str, **fields: Any) -> AnalysisJob:
        with Session(self._engine) as db:
            job = db.get(AnalysisJob, job_id)
            if job is None:
                raise NotFoundError(job_id)
            if job.status != JOB_PROCESSING:
                raise LedgerStateError(f"Job {job_id} is already {job.status}")
            for key, value in fields.items():
                setattr(job, key, value)
            # Eligibility opens the publish sub-lifecycle; a finished or running publish is left alone
            if job.qualifies_for_publish and job.status == JOB_DONE and job.publish_status == PUBLISH_NOT_APPLICABLE:
                job.publish_status = PUBLISH_PENDING
            self._stamp(job)
            db.add(job)
            db.commit()
            db.refresh(job)
            return job

    def mark_done(
        self,
        job_id: str,
        result: dict[str, Any],
        qualifies: bool,
        threshold: float,
        duration_ms: int | None = None,
    ) -> AnalysisJob:
        job = self._terminal(
            job_id,
            status=JOB_DONE,
            result=result,
            error=None,
            qualifies_for_publish=qualifies,
            score_threshold=threshold,
            duration_ms=duration_ms,
        )
        logger.info("Job %s done (qualifies=%s, threshold=%s)", job_id, qualifies, threshold)
        return job

    def mark_error(self, job_id: str, message: str, duration_ms: int | None = None) -> AnalysisJob:
        job = self._terminal(
            job_id,
            status=JOB_ERROR,
            error=(message or "unknown")[:MAX_ERROR_LEN],
            result=None,
            duration_ms=duration_ms,
        )
        logger.info("Job %s error: %s", job_id, job.error)
        return job

    def update_publish(self, job_id: str, **publish_fields: Any) -> AnalysisJob:
        """Publish sub-state only; analysis fields are never touched here."""
        unknown = set(publish_fields) - PUBLISH_FIELDS
        if unknown:
            raise ValueError(f"Not publish fields: {sorted(unknown)}")
        with Session(self._engine) as db:
            job = db.get(AnalysisJob, job_id)
            if job is None:
                raise NotFoundError(job_id)
            for key, value in publish_fields.items():
                setattr(job, key, value)
            self._stamp(job)
            db.add(job)
            db.commit()
            db.refresh(job)
            logger.info("Job %s publish_status=%s", job_id, job.publish_status)
            return job
