import logging
from typing import Callable, Sequence, TypeVar

from app.core.errors import AllCandidatesExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def invoke_with_fallback(operation: Callable[[str], T], candidates: Sequence[str]) -> T:
    """
    Calls operation(model_id) for each candidate in order and returns the first success.
    No delay between attempts, each candidate is tried at most once. If every candidate
    fails, AllCandidatesExhaustedError wraps the last candidate's error.
    """
    attempts: list[str] = []
    last_exc: Exception | None = None
    for model_id in candidates:
        attempts.append(model_id)
        try:
            result = operation(model_id)
        except Exception as e:
            last_exc = e
            logger.warning("Model %s failed (attempt %d/%d), trying next: %s", model_id, len(attempts), len(candidates), e)
            continue
        logger.info("Model %s succeeded (attempt %d/%d)", model_id, len(attempts), len(candidates))
        return result
    raise AllCandidatesExhaustedError(attempts, last_exc) from last_exc
