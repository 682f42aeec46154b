"""Guaranteed release of the staged remote file."""
import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from app.services.gemini_files import RemoteStagingDescriptor

logger = logging.getLogger(__name__)

Release = Callable[[RemoteStagingDescriptor], None]


class StagedFile:
    """Single-owner handle for one job's staged file; released exactly once."""

    def __init__(self) -> None:
        self.descriptor: RemoteStagingDescriptor | None = None
        self.released = False
        self.cleanup_error: Exception | None = None

    def acquire(self, descriptor: RemoteStagingDescriptor) -> RemoteStagingDescriptor:
        if self.descriptor is not None:
            raise RuntimeError("StagedFile already holds a descriptor")
        self.descriptor = descriptor
        return descriptor

    def release(self, release: Release) -> None:
        """Best-effort; errors go to the log and to ``cleanup_error``, never to the caller."""
        if self.released:
            return
        self.released = True
        if self.descriptor is None:
            return
        try:
            release(self.descriptor)
        except Exception as e:
            self.cleanup_error = e
            logger.warning("Cleanup of %s failed (ignored): %s", self.descriptor.remote_id, e)


@contextmanager
def staged_file(release: Release) -> Iterator[StagedFile]:
    """
    with staged_file(files.delete) as handle:
        descriptor = handle.acquire(files.stage(...))
        ...
    The release runs on every exit path; without a descriptor it is a no-op.
    """
    handle = StagedFile()
    try:
        yield handle
    finally:
        handle.release(release)
