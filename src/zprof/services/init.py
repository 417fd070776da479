import logging
import os
from typing import Optional

from ..archive.codec import ArchiveCodec
from ..backup.pre_zprof import PreZprofBackupManager
from ..config import ZprofPaths, write_default_config
from ..domain.errors import CaptureError, CaptureKind
from ..domain.models import InitResult
from ..frameworks.detector import ShellConfigDetector
from .lock import AdvisoryLock

logger = logging.getLogger(__name__)

STRUCTURE = ["profiles", "shared", "cache", "cache/backups", "cache/downloads", "backups"]


class InitService:
    """first-time setup: detect, capture the original config, create the managed root."""

    def __init__(self, paths: Optional[ZprofPaths] = None, codec: Optional[ArchiveCodec] = None):
        self.paths = paths or ZprofPaths()
        self.codec = codec or ArchiveCodec()

    def init(self, force_backup: bool = False) -> InitResult:
        """
        initialize zprof in the home directory. safe to re-run.

        args:
            force_backup: re-capture the pre-zprof backup even if one exists

        returns:
            detection result, backup record and whether the structure was new

        raises:
            LockError: if another zprof invocation is running
            CaptureError: if the original configuration cannot be captured
        """
        with AdvisoryLock(self.paths.lock_file):
            was_managed = self.paths.is_managed()

            # 1. detect what the user has today
            shell_config = ShellConfigDetector(self.paths.home).detect()

            # 2. capture it before zprof writes anything into HOME
            manager = PreZprofBackupManager(self.paths.home, self.paths.pre_zprof_dir, self.codec)
            backup = manager.capture(shell_config, force=force_backup)

            # 3. create the managed-state root
            try:
                self.create_structure()
            except OSError as e:
                raise CaptureError(CaptureKind.NO_WRITABLE_TARGET, self.paths.root, e) from e

        if not was_managed:
            logger.info("initialized %s", self.paths.root)
        return InitResult(shell_config=shell_config, backup=backup, created_structure=not was_managed)

    def create_structure(self) -> None:
        root = self.paths.root
        for subdir in STRUCTURE:
            (root / subdir).mkdir(parents=True, exist_ok=True)

        history = self.paths.shared_history
        if not history.exists():
            history.touch()
            os.chmod(history, 0o600)

        write_default_config(self.paths.config_file)
