"""Unit tests for the operation lock."""

import pytest

from cudamgr.core.lock import OperationLock
from cudamgr.utils.errors import LockBusyError


class TestOperationLock:
    """Tests for OperationLock."""

    def test_acquire_and_release(self, tmp_path):
        """Test the context manager takes and releases the lock."""
        lock = OperationLock(tmp_path / "cudamgr.lock")
        with lock:
            assert lock.is_locked
        assert not lock.is_locked

    def test_second_holder_fails_fast(self, tmp_path):
        """Test that contention raises LockBusyError without waiting."""
        path = tmp_path / "cudamgr.lock"
        with OperationLock(path):
            with pytest.raises(LockBusyError) as exc_info:
                OperationLock(path).acquire()
        assert exc_info.value.code == "LOCK_BUSY"

    def test_released_on_error(self, tmp_path):
        """Test that an exception inside the block releases the lock."""
        path = tmp_path / "cudamgr.lock"
        with pytest.raises(RuntimeError):
            with OperationLock(path):
                raise RuntimeError("boom")

        with OperationLock(path) as lock:
            assert lock.is_locked

    def test_creates_parent_directory(self, tmp_path):
        """Test that the lock directory is created on demand."""
        path = tmp_path / "missing" / "cudamgr.lock"
        with OperationLock(path):
            assert path.parent.is_dir()
