"""pre-zprof capture, safety snapshots and restoration strategies."""
from .pre_zprof import PreZprofBackupManager, get_zsh_version
from .snapshot import SafetySnapshotManager
from .restore import ChangeTracker, RestoreExecutor

__all__ = [
    "PreZprofBackupManager",
    "get_zsh_version",
    "SafetySnapshotManager",
    "ChangeTracker",
    "RestoreExecutor",
]
