"""Gemini Files API: resumable staging, readiness polling and remote delete.

Staging is a two-request resumable upload:
  1. ``POST /upload/v1beta/files`` with ``X-Goog-Upload-Command: start``;
     the provider answers with the session URL in ``x-goog-upload-url``
  2. ``POST <session url>`` with the whole payload and
     ``X-Goog-Upload-Command: upload, finalize`` at offset 0; the response
     body is the File resource

The staged File is then polled (``GET /v1beta/files/<id>``) until its
state is ``ACTIVE`` (tenacity, fixed interval, bounded by a deadline).
Staging and delete are never retried; a failed step is fatal for the job.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable

import requests
from tenacity import RetryCallState, Retrying, retry_if_exception_type, retry_if_result, wait_fixed

from app.core.config import PipelineConfig
from app.core.errors import (
    CleanupError,
    ReadinessTimeoutError,
    StagingInitiationError,
    StagingTransferError,
)

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://generativelanguage.googleapis.com"
DEFAULT_DISPLAY_NAME = "video.mp4"

STATE_PENDING = "pending"
STATE_ACTIVE = "active"
STATE_FAILED = "failed"

_TRANSIENT_CHECK_ERRORS = (requests.RequestException, ValueError, StagingTransferError)

_PROVIDER_STATES = {
    "PROCESSING": STATE_PENDING,
    "STATE_UNSPECIFIED": STATE_PENDING,
    "ACTIVE": STATE_ACTIVE,
    "FAILED": STATE_FAILED,
}

_FILES_URI_RE = re.compile(r"/files/([^/?]+)$")


@dataclass
class RemoteStagingDescriptor:
    """Handle to a payload staged with the analysis provider; owned by one job."""

    remote_id: str  # "files/abc123"
    remote_uri: str
    state: str = STATE_PENDING  # pending | active | failed
    mime_type: str | None = None
    display_name: str | None = None


def extract_file_ref(file_obj: dict | None) -> str | None:
    """Returns "files/<id>" from a File resource (name first, then uri)."""
    if not file_obj:
        return None
    name = file_obj.get("name")
    if name:
        return name
    uri = file_obj.get("uri")
    if uri:
        m = _FILES_URI_RE.search(uri)
        return f"files/{m.group(1)}" if m else uri
    return None


def _file_id(ref: str) -> str:
    # "files/abc" | "https://.../files/abc" -> "abc"
    return re.sub(r"^.*files/", "", str(ref))


def map_state(raw: str | None) -> str:
    if not raw:
        return STATE_PENDING
    return _PROVIDER_STATES.get(str(raw).upper(), STATE_PENDING)


def parse_file_resource(data: Any, fallback_mime: str | None = None) -> RemoteStagingDescriptor:
    """
    Accepts ``{"file": {...}}`` (upload response) or the bare File (GET response).

    Raises:
        StagingTransferError: no usable file reference in the response.
    """
    if not isinstance(data, dict):
        raise StagingTransferError("Staging response is not a JSON object")
    file_obj = data.get("file") if isinstance(data.get("file"), dict) else data
    ref = extract_file_ref(file_obj)
    if not ref:
        raise StagingTransferError("Staging response carries no file reference (name/uri)")
    return RemoteStagingDescriptor(
        remote_id=ref,
        remote_uri=file_obj.get("uri") or ref,
        state=map_state(file_obj.get("state")),
        mime_type=file_obj.get("mimeType") or file_obj.get("mime_type") or fallback_mime,
        display_name=file_obj.get("displayName") or file_obj.get("display_name"),
    )


class GeminiFilesClient:
    """Thin ``requests`` wrapper around the Files API endpoints the pipeline needs."""

    def __init__(
        self,
        api_key: str,
        config: PipelineConfig,
        base_url: str = DEFAULT_API_BASE,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api_key = api_key
        self._config = config
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._sleep = sleep
        self._clock = clock

    def _auth_headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self._api_key}

    # ------------------------------------------------------------------
    # Remote Staging Uploader
    # ------------------------------------------------------------------

    def stage(self, payload: bytes, mime_type: str, display_name: str | None = None) -> RemoteStagingDescriptor:
        """Stages *payload* in a single upload+finalize at offset 0 and returns its descriptor."""
        display_name = display_name or DEFAULT_DISPLAY_NAME
        try:
            init = self._session.post(
                f"{self._base_url}/upload/v1beta/files",
                json={"file": {"display_name": display_name, "mime_type": mime_type}},
                headers={
                    **self._auth_headers(),
                    "Content-Type": "application/json; charset=UTF-8",
                    "X-Goog-Upload-Protocol": "resumable",
                    "X-Goog-Upload-Command": "start",
                    "X-Goog-Upload-Header-Content-Length": str(len(payload)),
                    "X-Goog-Upload-Header-Content-Type": mime_type,
                },
                timeout=self._config.staging_init_timeout,
            )
            init.raise_for_status()
        except requests.RequestException as e:
            raise StagingInitiationError(f"Could not start resumable upload: {e}") from e

        upload_url = init.headers.get("x-goog-upload-url")
        if not upload_url:
            raise StagingInitiationError("Provider returned no upload URL")

        try:
            res = self._session.post(
                upload_url,
                data=payload,
                headers={
                    "Content-Type": mime_type,
                    "X-Goog-Upload-Command": "upload, finalize",
                    "X-Goog-Upload-Offset": "0",
                },
                timeout=self._config.staging_transfer_timeout,
            )
            res.raise_for_status()
            data = res.json()
        except requests.RequestException as e:
            raise StagingTransferError(f"Payload transfer failed: {e}") from e
        except ValueError as e:
            raise StagingTransferError("Staging response is not valid JSON") from e

        descriptor = parse_file_resource(data, fallback_mime=mime_type)
        logger.info("Staged %s (%d bytes) -> %s [%s]", display_name, len(payload), descriptor.remote_id, descriptor.state)
        return descriptor

    # ------------------------------------------------------------------
    # Readiness Poller
    # ------------------------------------------------------------------

    def fetch(self, descriptor: RemoteStagingDescriptor) -> RemoteStagingDescriptor:
        res = self._session.get(
            f"{self._base_url}/v1beta/files/{_file_id(descriptor.remote_id)}",
            headers=self._auth_headers(),
            timeout=self._config.readiness_request_timeout,
        )
        res.raise_for_status()
        return parse_file_resource(res.json(), fallback_mime=descriptor.mime_type)

    def await_ready(
        self,
        descriptor: RemoteStagingDescriptor,
        timeout: float | None = None,
        interval: float | None = None,
        *,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> RemoteStagingDescriptor:
        """
        Checks the state immediately, then every *interval* seconds (fixed, no backoff).

        A failed check (network error, bad body) counts as "not yet" and is retried
        until the deadline like a pending state.

        Raises:
            ReadinessTimeoutError: still not active after *timeout* seconds.
        """
        timeout = self._config.readiness_timeout if timeout is None else timeout
        interval = self._config.readiness_interval if interval is None else interval
        clock = clock or self._clock
        start = clock()
        last_state: str | None = None

        def check() -> RemoteStagingDescriptor:
            nonlocal last_state
            current = self.fetch(descriptor)
            last_state = current.state
            return current

        def log_failed_check(retry_state: RetryCallState) -> None:
            if retry_state.outcome is not None and retry_state.outcome.failed:
                logger.warning(
                    "Readiness check for %s failed: %s", descriptor.remote_id, retry_state.outcome.exception()
                )

        def timed_out(retry_state: RetryCallState) -> RemoteStagingDescriptor:
            raise ReadinessTimeoutError(last_state, timeout)

        retrying = Retrying(
            wait=wait_fixed(interval),
            # Deadline follows the injected clock so virtual time works in tests
            stop=lambda retry_state: clock() - start > timeout,
            retry=retry_if_result(lambda d: d.state != STATE_ACTIVE) | retry_if_exception_type(_TRANSIENT_CHECK_ERRORS),
            sleep=sleep or self._sleep,
            after=log_failed_check,
            retry_error_callback=timed_out,
        )
        current = retrying(check)
        descriptor.state = STATE_ACTIVE
        descriptor.remote_uri = current.remote_uri or descriptor.remote_uri
        logger.info("%s active after %.1fs", descriptor.remote_id, clock() - start)
        return descriptor

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    def delete(self, descriptor: RemoteStagingDescriptor) -> None:
        try:
            res = self._session.delete(
                f"{self._base_url}/v1beta/files/{_file_id(descriptor.remote_id)}",
                headers=self._auth_headers(),
                timeout=self._config.cleanup_timeout,
            )
            res.raise_for_status()
        except requests.RequestException as e:
            raise CleanupError(f"Could not delete {descriptor.remote_id}: {e}") from e
        logger.debug("Deleted staged file %s", descriptor.remote_id)
