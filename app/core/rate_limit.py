"""Per-IP rate limiting (SlowAPI) for the ingest and publish endpoints; honors X-Forwarded-For."""
from fastapi import Request

from slowapi import Limiter

from .config import settings


def _get_client_ip(request: Request) -> str:
    """Real client IP behind a proxy (Render, Nginx)."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


def upload_rate_limit() -> str:
    """Evaluated per request so the limit follows settings at runtime."""
    return f"{max(1, settings.rate_limit_per_minute)}/minute"


limiter = Limiter(key_func=_get_client_ip)
