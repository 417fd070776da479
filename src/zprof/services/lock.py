import logging
import os
import time
from pathlib import Path
from typing import Optional, Tuple

from ..domain.errors import LockError

logger = logging.getLogger(__name__)

STALE_AFTER_SECONDS = 3600


class AdvisoryLock:
    """
    lease file guarding the managed-state root against concurrent zprof runs.

    the file holds the owner's PID and the acquisition time. a lease whose
    owner is gone, or that is older than STALE_AFTER_SECONDS, is replaced.
    """

    def __init__(self, lock_file: Path, stale_after: int = STALE_AFTER_SECONDS):
        self.lock_file = Path(lock_file)
        self.stale_after = stale_after
        self.held = False

    def acquire(self) -> None:
        """
        raises:
            LockError: if a live, fresh lease is held by another process
        """
        for _ in range(2):
            try:
                fd = os.open(self.lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
            except FileExistsError:
                pid, acquired_at = self._read()
                if not self._is_stale(pid, acquired_at):
                    raise LockError(self.lock_file, pid)
                logger.warning("replacing stale lock %s (pid %s)", self.lock_file, pid)
                self._remove()
                continue

            with os.fdopen(fd, "w") as f:
                f.write(f"{os.getpid()}\n{int(time.time())}\n")
            self.held = True
            logger.debug("acquired %s", self.lock_file)
            return

        raise LockError(self.lock_file, None)

    def release(self) -> None:
        if not self.held:
            return
        pid, _ = self._read()
        if pid == os.getpid():
            self._remove()
        self.held = False
        logger.debug("released %s", self.lock_file)

    def __enter__(self) -> "AdvisoryLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def _read(self) -> Tuple[Optional[int], Optional[float]]:
        try:
            lines = self.lock_file.read_text().split()
        except OSError:
            return None, None
        pid = int(lines[0]) if lines and lines[0].isdigit() else None
        acquired_at = float(lines[1]) if len(lines) > 1 and lines[1].isdigit() else None
        return pid, acquired_at

    def _is_stale(self, pid: Optional[int], acquired_at: Optional[float]) -> bool:
        if pid is None or acquired_at is None:
            # unreadable or half-written lease
            return True
        if time.time() - acquired_at > self.stale_after:
            return True
        return not pid_alive(pid)

    def _remove(self) -> None:
        try:
            self.lock_file.unlink()
        except FileNotFoundError:
            pass


def pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # exists but owned by someone else
        return True
    return True
