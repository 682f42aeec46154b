"""Analysis pipeline: create -> stage -> await ready -> evaluate -> terminal write -> release.

One call drives one job, strictly in order.  Every fatal failure is written
once to the ledger as status=error and re-raised to the HTTP layer; the
staged file is released before ``run`` returns or raises.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable

import requests

from app.core.config import PipelineConfig
from app.core.errors import ValidationError, http_error_detail
from app.schemas.analyze import RubricReport
from app.services.analyze import GeminiEvaluator
from app.services.cleanup import staged_file
from app.services.gemini_files import GeminiFilesClient
from app.services.ledger import StatusLedger
from app.services.publish import evaluate_eligibility

logger = logging.getLogger(__name__)

VIDEO_MIME_PREFIX = "video/"


@dataclass
class AnalysisOutcome:
    job_id: str
    report: RubricReport
    qualifies_for_publish: bool
    score_threshold: float
    duration_ms: int


def validate_upload(job_id: str | None, payload: bytes | None, mime_type: str | None, max_bytes: int) -> None:
    """Ingest gate; runs before any ledger write."""
    if not job_id or not str(job_id).strip():
        raise ValidationError("analysisId is required")
    if payload is None:
        raise ValidationError("file is required")
    if not (mime_type or "").lower().startswith(VIDEO_MIME_PREFIX):
        raise ValidationError("Only video files are accepted")
    if len(payload) > max_bytes:
        raise ValidationError(
            f"File exceeds the {max_bytes // (1024 * 1024)} MB limit", status_code=413, max_bytes=max_bytes
        )
    if len(payload) == 0:
        raise ValidationError("File is empty")


def describe_failure(exc: BaseException) -> str:
    """Human-readable message stored in the ledger."""
    if isinstance(exc, requests.RequestException):
        return http_error_detail(exc)
    return str(exc) or type(exc).__name__


class AnalysisPipeline:
    def __init__(
        self,
        ledger: StatusLedger,
        files: GeminiFilesClient,
        evaluator: GeminiEvaluator,
        config: PipelineConfig,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._ledger = ledger
        self._files = files
        self._evaluator = evaluator
        self._config = config
        self._clock = clock

    def run(
        self,
        job_id: str,
        payload: bytes,
        mime_type: str,
        file_name: str | None = None,
        lang: str | None = None,
    ) -> AnalysisOutcome:
        self._ledger.create_job(
            job_id, {"file_name": file_name, "file_size": len(payload), "mime_type": mime_type}
        )
        t0 = self._clock()
        threshold = self._config.score_threshold
        with staged_file(self._files.delete) as handle:
            try:
                descriptor = handle.acquire(self._files.stage(payload, mime_type, file_name))
                self._files.await_ready(descriptor)
                report = self._evaluator.evaluate(descriptor, self._config.model_candidates, lang)
            except Exception as e:
                logger.exception("Job %s failed: %s", job_id, e)
                self._ledger.mark_error(job_id, describe_failure(e), duration_ms=self._elapsed_ms(t0))
                raise
            qualifies = evaluate_eligibility(report.score, threshold)
            duration_ms = self._elapsed_ms(t0)
            self._ledger.mark_done(
                job_id,
                report.model_dump(by_alias=True),
                qualifies,
                threshold,
                duration_ms=duration_ms,
            )
        return AnalysisOutcome(
            job_id=job_id,
            report=report,
            qualifies_for_publish=qualifies,
            score_threshold=threshold,
            duration_ms=duration_ms,
        )

    def _elapsed_ms(self, t0: float) -> int:
        return int((self._clock() - t0) * 1000)
