"""Rate limit: /analyzeVideo returns 429 once the per-IP budget is spent."""
import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.rate_limit import limiter


@pytest.fixture
def tight_limit(monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_per_minute", 2)
    limiter.reset()
    yield
    limiter.reset()


def test_analyze_200_then_429(client: TestClient, tight_limit):
    headers = {"X-Forwarded-For": "203.0.113.7"}
    for i in range(2):
        r = client.post("/analyzeVideo", data={"analysisId": "job-1"}, headers=headers)
        assert r.status_code == 400, f"Request {i+1} should reach validation"
    r = client.post("/analyzeVideo", data={"analysisId": "job-1"}, headers=headers)
    assert r.status_code == 429
    j = r.json()
    assert j.get("ok") is False
    assert "Too many requests" in j.get("error")


def test_limit_is_per_client_ip(client: TestClient, tight_limit):
    for _ in range(3):
        client.post("/analyzeVideo", data={"analysisId": "job-1"}, headers={"X-Forwarded-For": "203.0.113.7"})
    r = client.post("/analyzeVideo", data={"analysisId": "job-1"}, headers={"X-Forwarded-For": "198.51.100.2"})
    assert r.status_code == 400
