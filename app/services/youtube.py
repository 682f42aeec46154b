"""YouTube Data API v3 resumable upload (publishing provider).

  1. ``POST /upload/youtube/v3/videos?uploadType=resumable`` with snippet/status
     metadata; the session URL comes back in ``Location``
  2. ``PUT <session url>`` with the whole payload, which returns the video resource
  3. ``GET /youtube/v3/videos?id=...`` for the canonical descriptor for the link

Synchronous end to end; the video is never polled for processing.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any

import requests

from app.core.errors import PublishNotConfiguredError, PublishUploadError, http_error_detail

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://www.googleapis.com/upload/youtube/v3/videos"
VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"
TOKEN_URL = "https://oauth2.googleapis.com/token"
WATCH_URL = "https://www.youtube.com/watch?v={id}"
MAX_TITLE_LEN = 100
MAX_DESCRIPTION_LEN = 5000
TOKEN_TIMEOUT = 30.0
METADATA_TIMEOUT = 60.0


@dataclass
class PublishResult:
    remote_id: str
    link: str
    title: str | None = None
    privacy_status: str | None = None


class YouTubeClient:
    def __init__(
        self,
        access_token: str = "",
        client_id: str = "",
        client_secret: str = "",
        refresh_token: str = "",
        timeout: float = 600.0,
        session: requests.Session | None = None,
    ) -> None:
        self._static_token = access_token
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._timeout = timeout
        self._session = session or requests.Session()
        self._cached_token: str | None = None
        self._cached_until = 0.0

    def _access_token(self) -> str:
        """Static token if configured, else a refresh-token exchange (cached until shortly before expiry)."""
        if self._static_token:
            return self._static_token
        if not (self._client_id and self._client_secret and self._refresh_token):
            raise PublishNotConfiguredError("YouTube credentials are not configured")
        if self._cached_token and time.monotonic() < self._cached_until:
            return self._cached_token
        try:
            res = self._session.post(
                TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "refresh_token": self._refresh_token,
                },
                timeout=TOKEN_TIMEOUT,
            )
            res.raise_for_status()
            body = res.json()
        except requests.RequestException as e:
            raise PublishUploadError(f"OAuth token refresh failed: {http_error_detail(e)}") from e
        except ValueError as e:
            raise PublishUploadError("OAuth token response is not valid JSON") from e
        token = body.get("access_token")
        if not token:
            raise PublishUploadError("OAuth token response has no access_token")
        self._cached_token = token
        self._cached_until = time.monotonic() + max(0, int(body.get("expires_in", 3600)) - 60)
        return token

    def upload(self, payload: bytes, mime_type: str, metadata: dict[str, Any]) -> PublishResult:
        """
        metadata: title, description, tags, category_id, privacy_status.

        Raises:
            PublishUploadError: any step failed.
        """
        headers = {"Authorization": f"Bearer {self._access_token()}"}
        body = {
            "snippet": {
                "title": (metadata.get("title") or "video")[:MAX_TITLE_LEN],
                "description": (metadata.get("description") or "")[:MAX_DESCRIPTION_LEN],
                "tags": list(metadata.get("tags") or []),
                "categoryId": metadata.get("category_id") or "27",
            },
            "status": {
                "privacyStatus": metadata.get("privacy_status") or "unlisted",
                "selfDeclaredMadeForKids": False,
            },
        }
        try:
            init = self._session.post(
                UPLOAD_URL,
                params={"uploadType": "resumable", "part": "snippet,status"},
                json=body,
                headers={
                    **headers,
                    "Content-Type": "application/json; charset=UTF-8",
                    "X-Upload-Content-Length": str(len(payload)),
                    "X-Upload-Content-Type": mime_type,
                },
                timeout=METADATA_TIMEOUT,
            )
            init.raise_for_status()
        except requests.RequestException as e:
            raise PublishUploadError(f"Could not create the video entry: {http_error_detail(e)}") from e
        session_url = init.headers.get("Location")
        if not session_url:
            raise PublishUploadError("Publishing provider returned no upload session")

        try:
            res = self._session.put(
                session_url,
                data=payload,
                headers={**headers, "Content-Type": mime_type},
                timeout=self._timeout,
            )
            res.raise_for_status()
            video_id = res.json().get("id")
        except requests.RequestException as e:
            raise PublishUploadError(f"Video transfer failed: {http_error_detail(e)}") from e
        except (ValueError, AttributeError) as e:
            raise PublishUploadError("Transfer response is not a video resource") from e
        if not video_id:
            raise PublishUploadError("Transfer response carries no video id")

        try:
            res = self._session.get(
                VIDEOS_URL,
                params={"part": "snippet,status", "id": video_id},
                headers=headers,
                timeout=METADATA_TIMEOUT,
            )
            res.raise_for_status()
            items = res.json().get("items") or []
        except requests.RequestException as e:
            raise PublishUploadError(f"Could not fetch video {video_id}: {http_error_detail(e)}") from e
        except (ValueError, AttributeError) as e:
            raise PublishUploadError(f"Video {video_id} descriptor is not valid JSON") from e
        if not items:
            raise PublishUploadError(f"Video {video_id} not found after upload")

        video = items[0]
        result = PublishResult(
            remote_id=video.get("id") or video_id,
            link=WATCH_URL.format(id=video.get("id") or video_id),
            title=(video.get("snippet") or {}).get("title"),
            privacy_status=(video.get("status") or {}).get("privacyStatus"),
        )
        logger.info("Published %s (%s)", result.remote_id, result.privacy_status)
        return result
