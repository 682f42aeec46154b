"""Error taxonomy for the analysis pipeline and the publish gate."""


class AnalyzerError(Exception):
    """Base class for every error raised by this service."""


# ---------------------------------------------------------------------------
# Ingest gate
# ---------------------------------------------------------------------------


class ValidationError(AnalyzerError):
    """Rejected before any pipeline work; no ledger write happens."""

    def __init__(self, message: str, status_code: int = 400, max_bytes: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.max_bytes = max_bytes


# ---------------------------------------------------------------------------
# Analysis phase (fatal: ledger -> error)
# ---------------------------------------------------------------------------


class PipelineError(AnalyzerError):
    """Fatal analysis-phase failure."""


class StagingInitiationError(PipelineError):
    """The provider did not hand out a resumable upload session."""


class StagingTransferError(PipelineError):
    """Network/timeout/HTTP failure while sending the payload."""


class ReadinessTimeoutError(PipelineError):
    def __init__(self, last_state: str | None, timeout: float) -> None:
        self.last_state = last_state or "unknown"
        self.timeout = timeout
        super().__init__(
            f"Staged file was not ready within {timeout:g}s (last state: {self.last_state})"
        )


class ProviderCallError(AnalyzerError):
    """One provider call failed (one model candidate); the invoker moves on to the next."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AllCandidatesExhaustedError(PipelineError):
    """Every model candidate failed; ``__cause__`` is the last candidate's error."""

    def __init__(self, attempts: list[str], last_error: BaseException | None) -> None:
        self.attempts = list(attempts)
        self.last_error = last_error
        if last_error is None:
            msg = "No model candidates configured"
        else:
            last = attempts[-1] if attempts else "?"
            msg = f"All {len(attempts)} model candidates failed; last ({last}): {last_error}"
        super().__init__(msg)


class ResultDecodeError(PipelineError):
    """The evaluation response could not be decoded into a rubric report."""

    def __init__(self, message: str, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class CleanupError(AnalyzerError):
    """Logged only; never escalated."""


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class LedgerStateError(AnalyzerError):
    """Illegal ledger transition (e.g. a second terminal write)."""


# ---------------------------------------------------------------------------
# Publish phase
# ---------------------------------------------------------------------------


class NotFoundError(AnalyzerError):
    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Analysis {job_id} not found")


class EligibilityError(AnalyzerError):
    def __init__(self, score: float | None, threshold: float | None) -> None:
        self.score = score
        self.threshold = threshold
        super().__init__(f"Score {score} is below the publish threshold {threshold}")


class AlreadyPublishedError(AnalyzerError):
    def __init__(self, publish_link: str | None) -> None:
        self.publish_link = publish_link
        super().__init__(f"Already published: {publish_link}")


class PublishNotConfiguredError(AnalyzerError):
    """No YouTube credentials configured."""


class PublishUploadError(AnalyzerError):
    """The publishing provider rejected or failed the upload."""


def http_error_detail(exc: Exception) -> str:
    """Provider message from a ``{"error": {"message": ...}}`` body when there is one, else str(exc)."""
    response = getattr(exc, "response", None)
    if response is not None:
        try:
            message = (response.json().get("error") or {}).get("message")
        except (ValueError, AttributeError):
            message = None
        return f"{response.status_code}: {message or (response.text or '')[:300]}"
    return str(exc) or type(exc).__name__
