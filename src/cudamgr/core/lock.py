"""Machine-wide lock serializing mutating operations."""

from __future__ import annotations

from pathlib import Path
from types import TracebackType

from filelock import FileLock, Timeout

from cudamgr.utils.errors import LockBusyError
from cudamgr.utils.logging import get_logger

logger = get_logger(__name__)


class OperationLock:
    """Advisory lock file held for the duration of one mutating operation.

    Acquisition never waits: if another process (or another lock object in
    this process) holds the lock, ``LockBusyError`` is raised immediately.
    The lock is released on every exit path of the ``with`` block.

    Example:
        with OperationLock(paths.lock_file):
            ...
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        # thread_local=False so a second lock object on another thread
        # contends with this one like another process would
        self._lock = FileLock(str(self._path), timeout=0, thread_local=False, is_singleton=False)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_locked(self) -> bool:
        return self._lock.is_locked

    def acquire(self) -> None:
        """Take the lock or fail fast.

        Raises:
            LockBusyError: If the lock is held elsewhere
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._lock.acquire(timeout=0)
        except Timeout as e:
            raise LockBusyError(str(self._path)) from e
        logger.debug("Acquired lock %s", self._path)

    def release(self) -> None:
        if self._lock.is_locked:
            self._lock.release()
            logger.debug("Released lock %s", self._path)

    def __enter__(self) -> "OperationLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
