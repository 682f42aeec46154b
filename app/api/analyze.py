import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from app.api.deps import get_ledger, get_pipeline, get_pipeline_config, get_publish_gate
from app.core.config import PipelineConfig
from app.core.errors import (
    AlreadyPublishedError,
    EligibilityError,
    NotFoundError,
    PublishNotConfiguredError,
    PublishUploadError,
    ValidationError,
)
from app.core.rate_limit import limiter, upload_rate_limit
from app.schemas.analyze import (
    AnalysisJobView,
    AnalyzeResponse,
    PublishMetadata,
    PublishResponse,
)
from app.services.ledger import StatusLedger
from app.services.pipeline import AnalysisPipeline, describe_failure, validate_upload
from app.services.publish import PublishGate

log = logging.getLogger("analyzer")

router = APIRouter(tags=["analysis"])


def _http_error(status_code: int, message: str, **extra) -> HTTPException:
    """detail dict is merged into the error body by the app's HTTPException handler."""
    return HTTPException(status_code=status_code, detail={"error": message, **extra})


def _read_upload(file: UploadFile | None, max_bytes: int) -> bytes | None:
    """Reads at most max_bytes + 1 so an oversize file is detected without loading all of it."""
    if file is None:
        return None
    try:
        return file.file.read(max_bytes + 1)
    except Exception as e:
        log.exception("upload read error: %s", e)
        raise _http_error(400, "Could not read the uploaded file.") from e


def _validated_payload(
    analysis_id: str | None, file: UploadFile | None, config: PipelineConfig
) -> bytes:
    payload = _read_upload(file, config.max_upload_bytes)
    try:
        validate_upload(analysis_id, payload, file.content_type if file else None, config.max_upload_bytes)
    except ValidationError as e:
        extra = {"maxBytes": e.max_bytes} if e.max_bytes else {}
        raise _http_error(e.status_code, str(e), **extra)
    return payload


@router.post("/analyzeVideo", response_model=AnalyzeResponse)
@limiter.limit(upload_rate_limit)
def analyze_video(
    request: Request,
    file: UploadFile | None = File(None),
    analysis_id: str | None = Form(None, alias="analysisId"),
    lang: str | None = Form(None),
    config: PipelineConfig = Depends(get_pipeline_config),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
):
    """multipart/form-data: 'file' (video/*), 'analysisId', optional 'lang'. Runs the whole pipeline synchronously."""
    payload = _validated_payload(analysis_id, file, config)
    analysis_id = analysis_id.strip()
    request.state.analysis_id = analysis_id
    log.info("analyzeVideo: analysisId=%s filename=%s size=%d", analysis_id, file.filename, len(payload))
    try:
        outcome = pipeline.run(analysis_id, payload, file.content_type, file.filename, lang=lang)
    except Exception as e:
        raise _http_error(500, describe_failure(e), analysisId=analysis_id)
    return AnalyzeResponse(
        analysis_id=analysis_id,
        score=outcome.report.score,
        qualifies_for_publish=outcome.qualifies_for_publish,
    )


@router.post("/publishVideo", response_model=PublishResponse)
@limiter.limit(upload_rate_limit)
def publish_video(
    request: Request,
    file: UploadFile | None = File(None),
    analysis_id: str | None = Form(None, alias="analysisId"),
    title: str | None = Form(None),
    description: str | None = Form(None),
    privacy_status: str | None = Form(None, alias="privacyStatus"),
    tags: str | None = Form(None),
    config: PipelineConfig = Depends(get_pipeline_config),
    gate: PublishGate = Depends(get_publish_gate),
):
    """Same video as /analyzeVideo; uploaded to YouTube only if the analysis qualified."""
    payload = _validated_payload(analysis_id, file, config)
    analysis_id = analysis_id.strip()
    request.state.analysis_id = analysis_id
    metadata = PublishMetadata(
        title=(title or "").strip() or None,
        description=(description or "").strip() or None,
        privacy_status=(privacy_status or "").strip() or None,
        tags=[t.strip() for t in (tags or "").split(",") if t.strip()],
    )
    try:
        result = gate.publish(analysis_id, payload, file.content_type, metadata)
    except NotFoundError as e:
        raise _http_error(404, str(e), analysisId=analysis_id)
    except EligibilityError as e:
        raise _http_error(403, str(e), analysisId=analysis_id, score=e.score, threshold=e.threshold)
    except AlreadyPublishedError as e:
        raise _http_error(409, str(e), analysisId=analysis_id, publishLink=e.publish_link)
    except PublishNotConfiguredError as e:
        raise _http_error(503, str(e))
    except PublishUploadError as e:
        raise _http_error(502, str(e), analysisId=analysis_id)
    return PublishResponse(
        analysis_id=analysis_id,
        publish_link=result.link,
        publish_remote_id=result.remote_id,
    )


@router.get("/analyses/{analysis_id}", response_model=AnalysisJobView)
def get_analysis(analysis_id: str, ledger: StatusLedger = Depends(get_ledger)):
    job = ledger.get(analysis_id)
    if job is None:
        raise _http_error(404, f"Analysis {analysis_id} not found", analysisId=analysis_id)
    return AnalysisJobView.model_validate(job)
