"""HTTP surface: /analyzeVideo, /publishVideo, /analyses/{id}."""
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from app.api.deps import get_pipeline, get_pipeline_config, get_publish_gate
from app.core.config import PipelineConfig
from app.core.database import engine
from app.core.errors import StagingTransferError
from app.main import app
from app.models import ErrorLog
from app.services.pipeline import AnalysisPipeline
from app.services.publish import PublishGate
from conftest import FakeEvaluator, FakeFiles, FakeUploader, make_report

CONFIG = PipelineConfig(score_threshold=10.0, model_candidates=("models/a",), max_upload_bytes=1024)
VIDEO = ("clip.mp4", b"fake-video-bytes", "video/mp4")


def _use_pipeline(ledger, files=None, evaluator=None):
    files = files or FakeFiles()
    evaluator = evaluator or FakeEvaluator()
    app.dependency_overrides[get_pipeline_config] = lambda: CONFIG
    app.dependency_overrides[get_pipeline] = lambda: AnalysisPipeline(ledger, files, evaluator, CONFIG)
    return files, evaluator


def _use_gate(ledger, uploader):
    app.dependency_overrides[get_publish_gate] = lambda: PublishGate(ledger, uploader)


def _analyze(client: TestClient, analysis_id="job-1", file=VIDEO):
    files = {"file": file} if file else None
    data = {"analysisId": analysis_id} if analysis_id else {}
    return client.post("/analyzeVideo", data=data, files=files)


def test_analyze_success(client: TestClient, ledger):
    files, _ = _use_pipeline(ledger, evaluator=FakeEvaluator(make_report(42)))
    r = _analyze(client)
    assert r.status_code == 200, r.text
    assert r.json() == {"ok": True, "analysisId": "job-1", "score": 42.0, "qualifiesForPublish": True}
    assert len(files.deleted) == 1

    r = client.get("/analyses/job-1")
    assert r.status_code == 200
    j = r.json()
    assert j["status"] == "done"
    assert j["result"]["score"] == 42
    assert j["fileName"] == "clip.mp4"
    assert j["publishStatus"] == "pending"


def test_analyze_requires_file(client: TestClient, ledger):
    _use_pipeline(ledger)
    r = _analyze(client, file=None)
    assert r.status_code == 400
    j = r.json()
    assert j["ok"] is False
    assert j["error"] == "file is required"
    assert "request_id" in j


def test_analyze_requires_analysis_id(client: TestClient, ledger):
    _use_pipeline(ledger)
    r = _analyze(client, analysis_id=None)
    assert r.status_code == 400
    assert "analysisId" in r.json()["error"]
    assert ledger.get("job-1") is None


def test_analyze_rejects_non_video(client: TestClient, ledger):
    _use_pipeline(ledger)
    r = _analyze(client, file=("notes.pdf", b"%PDF", "application/pdf"))
    assert r.status_code == 400
    assert ledger.get("job-1") is None


def test_analyze_rejects_oversize(client: TestClient, ledger):
    files, _ = _use_pipeline(ledger)
    r = _analyze(client, file=("big.mp4", b"x" * 2048, "video/mp4"))
    assert r.status_code == 413
    assert r.json()["maxBytes"] == 1024
    assert files.staged == []
    assert ledger.get("job-1") is None


def test_analyze_failure_is_recorded(client: TestClient, ledger):
    _use_pipeline(ledger, files=FakeFiles(stage_error=StagingTransferError("Payload transfer failed: reset")))
    r = _analyze(client)
    assert r.status_code == 500
    j = r.json()
    assert j["analysisId"] == "job-1"
    assert "transfer failed" in j["error"]

    r = client.get("/analyses/job-1")
    assert r.json()["status"] == "error"
    assert "transfer failed" in r.json()["error"]


def test_get_unknown_analysis(client: TestClient):
    r = client.get("/analyses/missing")
    assert r.status_code == 404
    assert r.json()["analysisId"] == "missing"


def _publish(client: TestClient, analysis_id="job-1", **form):
    return client.post("/publishVideo", data={"analysisId": analysis_id, **form}, files={"file": VIDEO})


def test_publish_flow(client: TestClient, ledger):
    _use_pipeline(ledger, evaluator=FakeEvaluator(make_report(80)))
    uploader = FakeUploader()
    _use_gate(ledger, uploader)
    assert _analyze(client).status_code == 200

    r = _publish(client, title="Lesson 1", tags="math, algebra")
    assert r.status_code == 200, r.text
    assert r.json() == {
        "ok": True,
        "analysisId": "job-1",
        "publishLink": "https://www.youtube.com/watch?v=yt123",
        "publishRemoteId": "yt123",
    }
    _, _, metadata = uploader.calls[0]
    assert metadata["title"] == "Lesson 1"
    assert metadata["tags"] == ["math", "algebra"]

    r = _publish(client)
    assert r.status_code == 409
    assert r.json()["publishLink"] == "https://www.youtube.com/watch?v=yt123"
    assert client.get("/analyses/job-1").json()["publishStatus"] == "uploaded"


def test_publish_below_threshold(client: TestClient, ledger):
    _use_pipeline(ledger, evaluator=FakeEvaluator(make_report(9.5)))
    uploader = FakeUploader()
    _use_gate(ledger, uploader)
    _analyze(client)

    r = _publish(client)
    assert r.status_code == 403
    j = r.json()
    assert j["score"] == 9.5
    assert j["threshold"] == 10.0
    assert uploader.calls == []


def test_publish_unknown_analysis(client: TestClient, ledger):
    _use_pipeline(ledger)
    _use_gate(ledger, FakeUploader())
    assert _publish(client, analysis_id="nope").status_code == 404


def test_publish_not_configured(client: TestClient, ledger):
    _use_pipeline(ledger)
    _use_gate(ledger, None)
    _analyze(client)
    assert _publish(client).status_code == 503


def test_publish_upload_failure(client: TestClient, ledger):
    _use_pipeline(ledger)
    _use_gate(ledger, FakeUploader(error=ConnectionError("socket closed")))
    _analyze(client)

    r = _publish(client)
    assert r.status_code == 502
    j = client.get("/analyses/job-1").json()
    assert j["publishStatus"] == "error"
    assert "socket closed" in j["publishError"]


class _BrokenGate:
    def publish(self, analysis_id, payload, mime_type, metadata):
        raise RuntimeError("gate exploded")


def test_unhandled_error_is_logged_with_analysis_id(ledger):
    _use_pipeline(ledger)
    app.dependency_overrides[get_publish_gate] = lambda: _BrokenGate()
    try:
        with TestClient(app, raise_server_exceptions=False) as c:
            r = _publish(c, analysis_id="  job-broken ")
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 500
    assert r.json()["error"] == "Unexpected server error."

    with Session(engine) as db:
        rows = db.exec(select(ErrorLog).where(ErrorLog.analysis_id == "job-broken")).all()
    assert len(rows) == 1
    assert rows[0].endpoint == "/publishVideo"
    assert rows[0].error_message == "gate exploded"
    assert rows[0].created_at is not None
