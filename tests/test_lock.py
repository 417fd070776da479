"""test suite for the advisory lock."""
import pytest
import os
import time
import tempfile
import shutil
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zprof.domain.errors import LockError, ValidationKind
from zprof.services.lock import AdvisoryLock, pid_alive


class TestAdvisoryLock:
    @pytest.fixture
    def lock_file(self):
        """create a temporary lock file location."""
        temp_dir = Path(tempfile.mkdtemp())
        yield temp_dir / ".zsh-profiles.lock"
        if temp_dir.exists():
            shutil.rmtree(temp_dir)

    def test_acquire_writes_pid_and_timestamp(self, lock_file):
        lock = AdvisoryLock(lock_file)
        lock.acquire()
        pid, acquired_at = lock_file.read_text().split()
        assert int(pid) == os.getpid()
        assert abs(int(acquired_at) - time.time()) < 60
        lock.release()
        assert not lock_file.exists()

    def test_context_manager(self, lock_file):
        with AdvisoryLock(lock_file):
            assert lock_file.exists()
        assert not lock_file.exists()

    def test_held_lock_rejects_second_holder(self, lock_file):
        with AdvisoryLock(lock_file):
            with pytest.raises(LockError) as exc_info:
                AdvisoryLock(lock_file).acquire()
        assert exc_info.value.kind == ValidationKind.LOCKED
        assert exc_info.value.holder_pid == os.getpid()

    def test_dead_pid_is_stale(self, lock_file):
        lock_file.write_text(f"999999999\n{int(time.time())}\n")
        with patch("zprof.services.lock.pid_alive", return_value=False):
            lock = AdvisoryLock(lock_file)
            lock.acquire()
        assert int(lock_file.read_text().split()[0]) == os.getpid()
        lock.release()

    def test_old_lease_is_stale(self, lock_file):
        lock_file.write_text(f"{os.getpid()}\n{int(time.time()) - 7200}\n")
        lock = AdvisoryLock(lock_file)
        lock.acquire()
        assert lock.held
        lock.release()

    def test_garbage_lease_is_stale(self, lock_file):
        lock_file.write_text("not a lease")
        with AdvisoryLock(lock_file) as lock:
            assert lock.held

    def test_release_keeps_foreign_lease(self, lock_file):
        lock = AdvisoryLock(lock_file)
        lock.acquire()
        lock_file.write_text(f"1\n{int(time.time())}\n")
        lock.release()
        assert lock_file.exists()

    def test_pid_alive(self):
        assert pid_alive(os.getpid())
        assert not pid_alive(0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
