from enum import Enum
from pathlib import Path
from typing import List, Optional


class ZprofError(Exception):
    """base class for exceptions in zprof."""
    pass


class ArchiveError(ZprofError):
    """raised when the archive codec cannot build or read an archive."""
    def __init__(self, operation: str, path: Path, cause: Exception):
        self.operation = operation
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to {operation} {path}: {cause}")


class ManifestError(ZprofError):
    """raised when a backup manifest is missing or cannot be parsed."""
    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Backup manifest at {path} is unusable: {reason}")


class ValidationKind(str, Enum):
    NOT_MANAGED = "not_managed"
    HOME_INVALID = "home_invalid"
    HOME_NOT_WRITABLE = "home_not_writable"
    BACKUP_MISSING = "backup_missing"
    NO_PROFILES = "no_profiles"
    PROFILE_NOT_FOUND = "profile_not_found"
    PROFILE_REQUIRED = "profile_required"
    LOCKED = "locked"
    ROOT_UNSAFE = "root_unsafe"


class ValidationError(ZprofError):
    """raised when a precondition is not met; recoverable by user action."""
    def __init__(self, kind: ValidationKind, message: str):
        self.kind = kind
        super().__init__(message)


class LockError(ValidationError):
    """raised when another zprof invocation holds the managed-state lease."""
    def __init__(self, lock_path: Path, holder_pid: Optional[int]):
        self.lock_path = lock_path
        self.holder_pid = holder_pid
        holder = f"process {holder_pid}" if holder_pid else "another process"
        super().__init__(
            ValidationKind.LOCKED,
            f"zprof is already running ({holder} holds {lock_path}). "
            "Wait for it to finish, or remove the lock file if that process is gone.",
        )


class CaptureKind(str, Enum):
    NO_WRITABLE_TARGET = "no_writable_target"
    ARCHIVE_FAILED = "archive_failed"


class CaptureError(ZprofError):
    """raised when the pre-zprof backup cannot be captured."""
    def __init__(self, kind: CaptureKind, path: Path, cause: Exception):
        self.kind = kind
        self.path = path
        self.cause = cause
        if kind == CaptureKind.NO_WRITABLE_TARGET:
            message = f"Cannot create backup directory {path}: {cause}"
        else:
            message = f"Failed to archive shell configuration to {path}: {cause}"
        super().__init__(message)


class SnapshotError(ZprofError):
    """raised when the safety snapshot is aborted; no partial archive is left behind."""
    def __init__(self, source_root: Path, cause: Exception):
        self.source_root = source_root
        self.cause = cause
        super().__init__(f"Safety snapshot of {source_root} aborted: {cause}")


class RestorationError(ZprofError):
    """raised when a restoration strategy fails part-way."""
    def __init__(self, step: str, cause: Exception, changes: Optional[List] = None):
        self.step = step
        self.cause = cause
        self.changes = list(changes or [])
        super().__init__(f"Failed to {step}: {cause}")

    @property
    def last_completed(self):
        return self.changes[-1] if self.changes else None


class UserDeclined(ZprofError):
    """raised when the confirmation step is declined. not a failure."""
    def __init__(self):
        super().__init__("Uninstall cancelled")


class OrchestratorError(ZprofError):
    """terminal abort of a restoration run, carrying the state it aborted in."""
    def __init__(self, state, cause: ZprofError, changes: Optional[List] = None, snapshot=None):
        self.state = state
        self.cause = cause
        self.changes = list(changes or [])
        self.snapshot = snapshot
        super().__init__(f"Aborted during {state.value}: {cause}")

    @property
    def mutated(self) -> bool:
        """whether any destructive filesystem change happened before the abort."""
        return bool(self.changes)

    @property
    def declined(self) -> bool:
        return isinstance(self.cause, UserDeclined)
