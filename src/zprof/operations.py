"""
entry points for front ends (the CLI, scripts, a GUI bridge).

each function takes an optional home directory; when omitted the home is
resolved from ZPROF_HOME or the current user.
"""

import logging
from pathlib import Path
from typing import Optional

from .archive.codec import ProgressCallback
from .backup.pre_zprof import PreZprofBackupManager
from .backup.snapshot import SafetySnapshotManager
from .config import ZprofPaths
from .domain.models import (
    PreZprofBackup,
    RestorationChoice,
    RestorationReport,
    SafetySnapshot,
    ShellConfigInfo,
)
from .frameworks.detector import ShellConfigDetector
from .services.lock import AdvisoryLock
from .services.uninstall import ConfirmCallback, RestorationOrchestrator

logger = logging.getLogger(__name__)


def detect_shell_config(home: Optional[Path] = None) -> ShellConfigInfo:
    """scan home for shell config files and an installed framework. never fails."""
    return ShellConfigDetector(ZprofPaths(home).home).detect()


def capture_pre_zprof_backup(force: bool = False, home: Optional[Path] = None) -> PreZprofBackup:
    """
    detect and capture the user's original shell configuration.

    raises:
        LockError: if another zprof invocation is running
        CaptureError: if the backup cannot be written
    """
    paths = ZprofPaths(home)
    with AdvisoryLock(paths.lock_file):
        shell_config = ShellConfigDetector(paths.home).detect()
        manager = PreZprofBackupManager(paths.home, paths.pre_zprof_dir)
        return manager.capture(shell_config, force=force)


def create_safety_snapshot(
    skip: bool = False,
    home: Optional[Path] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> Optional[SafetySnapshot]:
    """
    archive the managed-state root.

    returns:
        None when skip is set, the empty sentinel when there is nothing to
        archive, otherwise the new snapshot

    raises:
        LockError: if another zprof invocation is running
        SnapshotError: if the snapshot is aborted
    """
    if skip:
        logger.warning("safety snapshot skipped")
        return None
    paths = ZprofPaths(home)
    with AdvisoryLock(paths.lock_file):
        return SafetySnapshotManager(paths.backups_dir).snapshot(paths.root, on_progress=on_progress)


def run_restoration(
    choice: RestorationChoice,
    home: Optional[Path] = None,
    confirm: Optional[ConfirmCallback] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> RestorationReport:
    """
    uninstall zprof with the chosen restoration strategy.

    raises:
        OrchestratorError: carrying the state the run aborted in
    """
    orchestrator = RestorationOrchestrator(ZprofPaths(home), confirm=confirm, on_progress=on_progress)
    return orchestrator.run(choice)
