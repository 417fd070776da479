import json
import logging
import os
import platform
import shutil
import stat
import subprocess
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..archive.codec import ArchiveCodec
from ..config import VERSION
from ..domain.errors import ArchiveError, CaptureError, CaptureKind, ManifestError
from ..domain.models import BackedUpFile, BackupManifest, PreZprofBackup, ShellConfigInfo
from ..utils.hash import hash_file, hash_link

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "pre-zprof.tar.gz"
MANIFEST_NAME = "backup-manifest.json"


class PreZprofBackupManager:
    """captures the user's shell configuration once, before zprof takes over."""

    def __init__(self, home: Path, backup_dir: Path, codec: Optional[ArchiveCodec] = None):
        self.home = Path(home)
        self.backup_dir = Path(backup_dir)
        self.codec = codec or ArchiveCodec()

    @property
    def archive_path(self) -> Path:
        return self.backup_dir / ARCHIVE_NAME

    @property
    def manifest_path(self) -> Path:
        return self.backup_dir / MANIFEST_NAME

    def exists(self) -> bool:
        """a backup exists only once both the archive and the manifest are in place."""
        return self.archive_path.is_file() and self.manifest_path.is_file()

    def load(self) -> PreZprofBackup:
        """
        load the existing backup record.

        raises:
            ManifestError: if the manifest is missing or cannot be parsed
        """
        if not self.manifest_path.is_file():
            raise ManifestError(self.manifest_path, "manifest not found")
        if not self.archive_path.is_file():
            raise ManifestError(self.manifest_path, f"archive {self.archive_path} not found")

        try:
            with open(self.manifest_path, "r") as f:
                data = json.load(f)
            manifest = BackupManifest(**data)
        except (OSError, json.JSONDecodeError, TypeError, PydanticValidationError) as e:
            raise ManifestError(self.manifest_path, str(e)) from e

        return PreZprofBackup(
            archive_path=self.archive_path,
            manifest_path=self.manifest_path,
            manifest=manifest,
        )

    def capture(self, shell_config: ShellConfigInfo, force: bool = False) -> PreZprofBackup:
        """
        archive every detected config file and write the manifest.

        args:
            shell_config: detector output naming the files to capture
            force: replace an existing backup; the previous one is moved aside
                   and put back if this capture fails

        returns:
            the new record, or the existing one unchanged when a backup already
            exists and force is False

        raises:
            CaptureError: if the backup directory cannot be created or the
                          archive cannot be written
        """
        if self.exists() and not force:
            logger.info("pre-zprof backup already exists at %s, skipping capture", self.backup_dir)
            return self.load()

        moved_aside = self._move_aside() if force and self.backup_dir.exists() else None

        try:
            backup = self._capture(shell_config)
        except BaseException:
            self._discard_partial()
            if moved_aside is not None:
                os.replace(moved_aside, self.backup_dir)
                logger.info("restored previous backup from %s", moved_aside)
            raise

        logger.info("pre-zprof backup complete: %d files", len(backup.manifest.captured_files))
        return backup

    def _capture(self, shell_config: ShellConfigInfo) -> PreZprofBackup:
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            os.chmod(self.backup_dir, 0o700)
        except OSError as e:
            raise CaptureError(CaptureKind.NO_WRITABLE_TARGET, self.backup_dir, e) from e

        names = shell_config.file_names
        try:
            entries = [self._describe(name) for name in names]
        except OSError as e:
            raise CaptureError(CaptureKind.ARCHIVE_FAILED, self.archive_path, e) from e

        manifest = BackupManifest(
            captured_files=entries,
            detected_framework=shell_config.detected_framework,
            zsh_version=get_zsh_version(),
            os=platform.system().lower() or "unknown",
            zprof_version=VERSION,
        )

        try:
            self.codec.write_files(self.home, names, self.archive_path, follow_symlinks=False, mode=0o600)
            # the manifest goes last: its presence marks the backup complete
            self._write_manifest(manifest)
        except ArchiveError as e:
            raise CaptureError(CaptureKind.ARCHIVE_FAILED, self.archive_path, e) from e
        except OSError as e:
            raise CaptureError(CaptureKind.ARCHIVE_FAILED, self.manifest_path, e) from e

        # same record a later load() returns
        return self.load()

    def _describe(self, name: str) -> BackedUpFile:
        path = self.home / name
        st = os.lstat(path)
        if stat.S_ISLNK(st.st_mode):
            target = os.readlink(path)
            return BackedUpFile(
                path=name,
                size=len(target.encode()),
                checksum=hash_link(path),
                permissions=stat.S_IMODE(st.st_mode),
                is_symlink=True,
                symlink_target=target,
            )
        return BackedUpFile(
            path=name,
            size=st.st_size,
            checksum=hash_file(path),
            permissions=stat.S_IMODE(st.st_mode),
        )

    def _write_manifest(self, manifest: BackupManifest) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=".manifest.", suffix=".partial", dir=self.backup_dir)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(manifest.model_dump(mode="json"), f, indent=2)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.manifest_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _move_aside(self) -> Path:
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        target = self.backup_dir.with_name(f"{self.backup_dir.name}-{timestamp}")
        counter = 1
        while target.exists():
            target = self.backup_dir.with_name(f"{self.backup_dir.name}-{timestamp}-{counter}")
            counter += 1
        try:
            os.replace(self.backup_dir, target)
        except OSError as e:
            raise CaptureError(CaptureKind.NO_WRITABLE_TARGET, self.backup_dir, e) from e
        logger.info("moved previous pre-zprof backup to %s", target)
        return target

    def _discard_partial(self) -> None:
        if self.backup_dir.exists():
            shutil.rmtree(self.backup_dir, ignore_errors=True)


def list_previous_generations(backup_dir: Path) -> List[Path]:
    """backups moved aside by forced re-captures, oldest first."""
    parent = backup_dir.parent
    if not parent.is_dir():
        return []
    return sorted(p for p in parent.glob(f"{backup_dir.name}-*") if p.is_dir())


def get_zsh_version() -> str:
    """best-effort `zsh --version`; returns "unknown" when zsh is unavailable."""
    try:
        result = subprocess.run(
            ["zsh", "--version"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("could not query zsh version: %s", e)
        return "unknown"
    if result.returncode != 0:
        return "unknown"
    return result.stdout.strip() or "unknown"
