import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root wherever uvicorn is started from
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlmodel import Session

from app.api.analyze import router as analyze_router
from app.core.config import get_model_candidates, is_gemini_configured, is_publish_configured, settings
from app.core.database import engine, init_db, ping_db
from app.core.rate_limit import limiter
from app.logging import setup_logging
from app.models import AnalysisJob, ErrorLog  # noqa: F401

setup_logging(level=settings.log_level, provider_level=settings.provider_log_level)
log = logging.getLogger("analyzer")


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    log.info("GEMINI_API_KEY loaded: %s", "yes" if is_gemini_configured() else "NO (add GEMINI_API_KEY=... to .env)")
    log.info("Model candidates: %s", ", ".join(get_model_candidates()) or "-")
    log.info("YouTube publishing: %s", "enabled" if is_publish_configured() else "disabled")
    yield


app = FastAPI(
    title="Analyzer API",
    description="Video rubric analysis with threshold-gated publishing",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, detail: str, **extra) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    body = {"ok": False, "error": detail, "status_code": status_code, **extra}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def _jsonable_errors(errs) -> list[dict]:
    """Validation errors may carry exception objects in ctx; keep only JSON-safe parts."""
    return [{"loc": list(e.get("loc") or []), "msg": e.get("msg"), "type": e.get("type")} for e in errs]


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("rate limit: path=%s detail=%s", request.url.path, exc.detail)
    return _error_response(request, 429, "Too many requests. Please wait a minute.")


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.warning(
        "Request validation error (422): path=%s method=%s detail=%s",
        request.url.path,
        request.method,
        errs,
    )
    first = errs[0] if errs else {}
    return _error_response(request, 422, first.get("msg") or "Invalid request.", detail=_jsonable_errors(errs))


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        extra = dict(exc.detail)
        message = str(extra.pop("error", "") or "Error")
        return _error_response(request, exc.status_code, message, **extra)
    return _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc, exc_info=True)
    try:
        with Session(engine) as db:
            db.add(ErrorLog(
                request_id=getattr(request.state, "request_id", None),
                analysis_id=getattr(request.state, "analysis_id", None) or request.path_params.get("analysis_id"),
                endpoint=request.url.path,
                method=request.method,
                error_message=str(exc)[:2000],
                stack_trace=traceback.format_exc()[:10000],
            ))
            db.commit()
    except Exception as e:
        log.warning("ErrorLog write failed: %s", e)
    return _error_response(request, 500, "Unexpected server error.")


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request.state.request_id
    log.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        latency_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(analyze_router)


@app.get("/health")
def health():
    candidates = list(get_model_candidates())
    try:
        database = "ok" if ping_db() else "error"
    except Exception as e:
        log.warning("health: database check failed: %s", e)
        database = "error"
    return {
        "ok": database == "ok",
        "status": "ok",
        "model": candidates[0] if candidates else None,
        "modelCandidates": candidates,
        "geminiConfigured": is_gemini_configured(),
        "publishConfigured": is_publish_configured(),
        "scoreThreshold": settings.score_threshold,
        "database": database,
    }
