"""YouTube resumable upload client against a fake session."""
import pytest

from app.core.errors import PublishNotConfiguredError, PublishUploadError
from app.services.youtube import TOKEN_URL, UPLOAD_URL, VIDEOS_URL, YouTubeClient
from conftest import FakeResponse

METADATA = {"title": "Lesson 1", "description": "desc", "tags": ["a"], "category_id": "27", "privacy_status": "unlisted"}


def _video_flow(session):
    session.add("post", FakeResponse(200, headers={"Location": "https://upload.example.test/yt-session"}))
    session.add("put", FakeResponse(200, {"id": "vid42"}))
    session.add(
        "get",
        FakeResponse(200, {"items": [{"id": "vid42", "snippet": {"title": "Lesson 1"}, "status": {"privacyStatus": "unlisted"}}]}),
    )


def test_upload_with_static_token(fake_session):
    _video_flow(fake_session)
    result = YouTubeClient(access_token="tok", session=fake_session).upload(b"video", "video/mp4", METADATA)

    assert result.remote_id == "vid42"
    assert result.link == "https://www.youtube.com/watch?v=vid42"
    assert result.privacy_status == "unlisted"

    (_, init_url, init), = fake_session.calls_for("post")
    assert init_url == UPLOAD_URL
    assert init["params"]["uploadType"] == "resumable"
    assert init["headers"]["Authorization"] == "Bearer tok"
    assert init["json"]["snippet"]["title"] == "Lesson 1"
    assert init["json"]["status"]["privacyStatus"] == "unlisted"
    (_, put_url, put), = fake_session.calls_for("put")
    assert put_url == "https://upload.example.test/yt-session"
    assert put["data"] == b"video"
    (_, get_url, get), = fake_session.calls_for("get")
    assert get_url == VIDEOS_URL
    assert get["params"]["id"] == "vid42"


def test_upload_with_refresh_token(fake_session):
    fake_session.add("post", FakeResponse(200, {"access_token": "fresh", "expires_in": 3600}))
    _video_flow(fake_session)
    client = YouTubeClient(client_id="cid", client_secret="secret", refresh_token="rt", session=fake_session)
    client.upload(b"video", "video/mp4", METADATA)

    token_call, init_call = fake_session.calls_for("post")
    assert token_call[1] == TOKEN_URL
    assert token_call[2]["data"]["grant_type"] == "refresh_token"
    assert init_call[2]["headers"]["Authorization"] == "Bearer fresh"


def test_missing_credentials():
    with pytest.raises(PublishNotConfiguredError):
        YouTubeClient().upload(b"video", "video/mp4", METADATA)


def test_no_upload_session(fake_session):
    fake_session.add("post", FakeResponse(200, headers={}))
    with pytest.raises(PublishUploadError):
        YouTubeClient(access_token="tok", session=fake_session).upload(b"video", "video/mp4", METADATA)


def test_transfer_rejected(fake_session):
    fake_session.add("post", FakeResponse(200, headers={"Location": "https://upload.example.test/s"}))
    fake_session.add("put", FakeResponse(403, {"error": {"message": "quotaExceeded"}}))
    with pytest.raises(PublishUploadError, match="quotaExceeded"):
        YouTubeClient(access_token="tok", session=fake_session).upload(b"video", "video/mp4", METADATA)


def test_video_missing_after_upload(fake_session):
    fake_session.add("post", FakeResponse(200, headers={"Location": "https://upload.example.test/s"}))
    fake_session.add("put", FakeResponse(200, {"id": "vid42"}))
    fake_session.add("get", FakeResponse(200, {"items": []}))
    with pytest.raises(PublishUploadError, match="not found"):
        YouTubeClient(access_token="tok", session=fake_session).upload(b"video", "video/mp4", METADATA)
