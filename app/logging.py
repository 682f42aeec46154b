"""
Logging configuration.
Uvicorn and app logger levels; pipeline failures are logged with logger.exception (app/services/pipeline.py).
Provider clients (Gemini Files, evaluation, model fallback, YouTube) can be turned up on their own,
e.g. PROVIDER_LOG_LEVEL=DEBUG to see every staging/readiness/model attempt without debugging the whole app.
"""
import logging
import sys

# Loggers of the modules that talk to Gemini or YouTube
PROVIDER_LOGGERS = (
    "app.services.gemini_files",
    "app.services.analyze",
    "app.services.fallback",
    "app.services.youtube",
)


def _normalize(level: int | str | None) -> int | str | None:
    if isinstance(level, str):
        return level.strip().upper() or None
    return level


def setup_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    provider_level: int | str | None = None,
) -> None:
    level = _normalize(level) or logging.INFO
    if format_string is None:
        format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stdout,
        force=True,
    )
    # Keep uvicorn access/error loggers at the same level
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    # app loggers
    logging.getLogger("analyzer").setLevel(level)
    logging.getLogger("app").setLevel(level)
    # Unset means inherit from "app"
    provider_level = _normalize(provider_level)
    for name in PROVIDER_LOGGERS:
        logging.getLogger(name).setLevel(provider_level or logging.NOTSET)
    # Provider HTTP calls log every request at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
