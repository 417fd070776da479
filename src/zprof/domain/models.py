from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConfigFile(BaseModel):
    """a shell config file found in the home directory."""
    path: Path
    name: str  # relative to home
    is_symlink: bool = False
    symlink_target: Optional[Path] = None


class DetectedFramework(BaseModel):
    name: str
    install_path: Optional[Path] = None
    config_path: Optional[Path] = None
    plugins: List[str] = Field(default_factory=list)
    theme: Optional[str] = None


class ShellConfigInfo(BaseModel):
    """detected state of a home directory prior to management."""
    home: Path
    files: List[ConfigFile] = Field(default_factory=list)
    framework: str = "none"
    framework_install_dir: Optional[Path] = None
    detected_framework: Optional[DetectedFramework] = None

    @property
    def file_names(self) -> List[str]:
        return [f.name for f in self.files]


class BackedUpFile(BaseModel):
    path: str  # relative to home, also the archive member name
    size: int = 0
    checksum: str  # sha256; for symlinks the hash of the target string
    permissions: int = 0o644
    is_symlink: bool = False
    symlink_target: Optional[str] = None


class BackupManifest(BaseModel):
    captured_files: List[BackedUpFile] = Field(default_factory=list)
    detected_framework: Optional[DetectedFramework] = None
    captured_at: datetime = Field(default_factory=utc_now)
    zsh_version: str = "unknown"
    os: str = "unknown"
    zprof_version: str = "unknown"

    def find(self, path: str) -> Optional[BackedUpFile]:
        return next((f for f in self.captured_files if f.path == path), None)


class PreZprofBackup(BaseModel):
    """immutable record of the user's original configuration."""
    archive_path: Path
    manifest_path: Path
    manifest: BackupManifest


class SafetySnapshot(BaseModel):
    """last-resort archive of the managed-state root."""
    archive_path: Optional[Path] = None
    size_bytes: int = 0
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def empty(cls) -> "SafetySnapshot":
        """sentinel for "nothing to back up"."""
        return cls(archive_path=None, size_bytes=0)

    @property
    def is_empty(self) -> bool:
        return self.archive_path is None


class RestorationKind(str, Enum):
    RESTORE_ORIGINAL = "restore_original"
    PROMOTE_PROFILE = "promote_profile"
    CLEAN_REMOVAL = "clean_removal"


class RestorationChoice(BaseModel):
    kind: RestorationKind
    profile_name: Optional[str] = None
    skip_confirmation: bool = False
    skip_safety_backup: bool = False
    keep_backups: bool = False

    @classmethod
    def restore_original(cls, **modifiers) -> "RestorationChoice":
        return cls(kind=RestorationKind.RESTORE_ORIGINAL, **modifiers)

    @classmethod
    def promote_profile(cls, profile_name: str, **modifiers) -> "RestorationChoice":
        return cls(kind=RestorationKind.PROMOTE_PROFILE, profile_name=profile_name, **modifiers)

    @classmethod
    def clean_removal(cls, **modifiers) -> "RestorationChoice":
        return cls(kind=RestorationKind.CLEAN_REMOVAL, **modifiers)

    def describe(self) -> str:
        if self.kind == RestorationKind.RESTORE_ORIGINAL:
            return "restore original configuration"
        if self.kind == RestorationKind.PROMOTE_PROFILE:
            return f"promote profile '{self.profile_name}'"
        return "clean removal"


class RestorationOption(BaseModel):
    """a strategy as offered to a front end, with the reason it is unavailable."""
    kind: RestorationKind
    enabled: bool
    reason: Optional[str] = None


class UninstallSummary(BaseModel):
    choice: RestorationChoice
    files_to_restore: int = 0
    history_entries: Optional[int] = None
    source_date: Optional[datetime] = None
    profile_count: int = 0
    managed_size_bytes: int = 0
    managed_root: Path
    entry_point_managed: bool = False
    snapshot_planned: bool = True
    warnings: List[str] = Field(default_factory=list)


class Change(BaseModel):
    action: str  # restored, backed-up, copied, removed, partly-removed, relocated, rewritten
    path: Path

    def __str__(self) -> str:
        return f"{self.action} {self.path}"


class RestorationReport(BaseModel):
    choice: RestorationChoice
    changes: List[Change] = Field(default_factory=list)
    snapshot: Optional[SafetySnapshot] = None
    elapsed_seconds: float = 0.0
    states: List[str] = Field(default_factory=list)

    @property
    def touched_files(self) -> List[Path]:
        return [c.path for c in self.changes]

    @property
    def restored_count(self) -> int:
        return sum(1 for c in self.changes if c.action in ("restored", "copied"))

    @property
    def removed_count(self) -> int:
        return sum(1 for c in self.changes if c.action == "removed")


class InitResult(BaseModel):
    shell_config: ShellConfigInfo
    backup: PreZprofBackup
    created_structure: bool
