"""Pytest fixtures: test client, per-test ledger (in-memory SQLite), provider fakes."""
import os

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

# Must be set before app is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("GEMINI_MODEL", "gemini-1.5-pro-002")
os.environ.setdefault("GEMINI_FALLBACK_MODELS", "gemini-2.5-flash")
os.environ.setdefault("SCORE_THRESHOLD", "10")
# High enough that only the rate limit tests ever hit it
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")
for _key in ("YOUTUBE_ACCESS_TOKEN", "YOUTUBE_CLIENT_ID", "YOUTUBE_CLIENT_SECRET", "YOUTUBE_REFRESH_TOKEN"):
    os.environ[_key] = ""

from app.api.deps import get_ledger
from app.main import app
from app.schemas.analyze import RubricReport
from app.services.gemini_files import STATE_ACTIVE, RemoteStagingDescriptor
from app.services.ledger import StatusLedger
from app.services.youtube import PublishResult


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, headers=None, text=""):
        self.status_code = status_code
        self._json = json_data
        self.headers = headers or {}
        self.text = text

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """
    Stands in for requests.Session. Responses are queued per method and served
    in order; the last one keeps being served. A queued exception is raised.
    """

    def __init__(self):
        self.calls = []
        self._queues = {"get": [], "post": [], "put": [], "delete": []}

    def add(self, method, *items):
        self._queues[method].extend(items)
        return self

    def calls_for(self, method):
        return [c for c in self.calls if c[0] == method]

    def _request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        queue = self._queues[method]
        assert queue, f"unexpected {method.upper()} {url}"
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, **kwargs):
        return self._request("get", url, **kwargs)

    def post(self, url, **kwargs):
        return self._request("post", url, **kwargs)

    def put(self, url, **kwargs):
        return self._request("put", url, **kwargs)

    def delete(self, url, **kwargs):
        return self._request("delete", url, **kwargs)


class FakeClock:
    """Virtual time for the readiness poller: sleep() advances clock()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def make_report(score=80.0, **overrides):
    data = {
        "score": score,
        "summary": "Clear story opening, three bullets, homework assigned.",
        "findings": [
            {"ruleId": "R1", "ok": True, "note": "00:05 anecdote"},
            {"ruleId": "R2", "ok": True, "note": "3 bullets"},
            {"ruleId": "R3", "ok": True, "note": "worksheet"},
        ],
        "suggestions": ["Shorten the intro"],
    }
    data.update(overrides)
    return RubricReport.model_validate(data)


class FakeFiles:
    """Provider staging double; records every stage/delete."""

    def __init__(self, stage_error=None, ready_error=None, delete_error=None):
        self.stage_error = stage_error
        self.ready_error = ready_error
        self.delete_error = delete_error
        self.staged = []
        self.deleted = []

    def stage(self, payload, mime_type, display_name=None):
        if self.stage_error:
            raise self.stage_error
        n = len(self.staged) + 1
        descriptor = RemoteStagingDescriptor(
            remote_id=f"files/f{n}",
            remote_uri=f"https://example.test/v1beta/files/f{n}",
            mime_type=mime_type,
            display_name=display_name,
        )
        self.staged.append(descriptor)
        return descriptor

    def await_ready(self, descriptor):
        if self.ready_error:
            raise self.ready_error
        descriptor.state = STATE_ACTIVE
        return descriptor

    def delete(self, descriptor):
        self.deleted.append(descriptor)
        if self.delete_error:
            raise self.delete_error


class FakeEvaluator:
    def __init__(self, report=None, error=None):
        self.report = report or make_report()
        self.error = error
        self.calls = []

    def evaluate(self, descriptor, candidates=None, lang=None):
        self.calls.append((descriptor, tuple(candidates or ()), lang))
        if self.error:
            raise self.error
        return self.report


class FakeUploader:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def upload(self, payload, mime_type, metadata):
        self.calls.append((payload, mime_type, metadata))
        if self.error:
            raise self.error
        return PublishResult(
            remote_id="yt123",
            link="https://www.youtube.com/watch?v=yt123",
            title=metadata.get("title"),
            privacy_status=metadata.get("privacy_status"),
        )


@pytest.fixture
def ledger():
    """Fresh ledger per test, isolated from the app's engine."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield StatusLedger(engine)
    engine.dispose()


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture(scope="function")
def client(ledger):
    """TestClient; lifespan prepares the in-memory DB, the ledger dependency points at the test ledger."""
    app.dependency_overrides[get_ledger] = lambda: ledger
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
