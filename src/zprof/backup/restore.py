"""
the three restoration strategies executed by the uninstall orchestrator.

every filesystem mutation is recorded in a ChangeTracker so that a failure
part-way names the last completed step. nothing here rolls back; the safety
snapshot is the recovery path.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional

from ..archive.codec import ArchiveCodec, member_index
from ..config import ZprofPaths
from ..domain.errors import ArchiveError, RestorationError
from ..domain.models import BackedUpFile, Change, PreZprofBackup
from ..shell.zdotdir import ZshenvManager, has_managed_section
from ..utils.hash import hash_bytes, hash_file, hash_link

logger = logging.getLogger(__name__)

CONFLICT_SUFFIX = ".zprofbackup"

# files promoted from a profile directory into HOME
PROMOTED_FILES = [".zshrc", ".zshenv", ".zprofile", ".zlogin", ".zlogout"]
HISTORY_FILE = ".zsh_history"


class ChangeTracker:
    """ordered log of completed mutations."""

    def __init__(self):
        self.changes: List[Change] = []

    def record(self, action: str, path: Path) -> None:
        self.changes.append(Change(action=action, path=path))
        logger.debug("%s %s", action, path)

    def fail(self, step: str, cause: Exception) -> RestorationError:
        return RestorationError(step, cause, self.changes)


class RestoreExecutor:
    """applies a restoration strategy to the home directory."""

    def __init__(self, paths: ZprofPaths, codec: Optional[ArchiveCodec] = None):
        self.paths = paths
        self.home = paths.home
        self.codec = codec or ArchiveCodec()

    def restore_original(self, backup: PreZprofBackup, tracker: ChangeTracker) -> None:
        """
        write every captured file back to its original HOME location.

        the archive is verified against the manifest before anything is
        written. a HOME file that differs from the captured one, and was not
        written by zprof, is first copied to <file>.zprofbackup.

        raises:
            RestorationError: if verification fails (nothing written) or a
                              file cannot be restored
        """
        archive = backup.archive_path
        entries = backup.manifest.captured_files
        self.verify_backup(backup)

        for entry in entries:
            dest = self.home / entry.path
            try:
                self._preserve_conflict(dest, entry, tracker)
                mode = None if entry.is_symlink else entry.permissions
                self.codec.extract_member(archive, entry.path, dest, mode=mode)
            except (ArchiveError, OSError) as e:
                raise tracker.fail(f"restore {entry.path}", e) from e
            tracker.record("restored", dest)

        logger.info("restored %d files from %s", len(entries), archive)

    def verify_backup(self, backup: PreZprofBackup) -> None:
        """
        check every manifest entry against the archive: presence, type and checksum.

        raises:
            RestorationError: naming the first entry that does not match
        """
        archive = backup.archive_path
        try:
            members = member_index(self.codec.list_members(archive))
        except ArchiveError as e:
            raise RestorationError("read pre-zprof backup", e) from e

        for entry in backup.manifest.captured_files:
            member = members.get(entry.path)
            if member is None:
                raise RestorationError(
                    "verify pre-zprof backup",
                    ValueError(f"'{entry.path}' is missing from {archive}"),
                )
            if member.is_symlink != entry.is_symlink:
                raise RestorationError(
                    "verify pre-zprof backup",
                    ValueError(f"'{entry.path}' has a different file type in {archive}"),
                )

            if member.is_symlink:
                actual = hash_bytes((member.linkname or "").encode())
            else:
                try:
                    actual = hash_bytes(self.codec.read_member(archive, entry.path))
                except ArchiveError as e:
                    raise RestorationError("verify pre-zprof backup", e) from e

            if actual != entry.checksum:
                raise RestorationError(
                    "verify pre-zprof backup",
                    ValueError(f"checksum mismatch for '{entry.path}'"),
                )

    def promote_profile(self, profile_dir: Path, tracker: ChangeTracker) -> None:
        """
        copy a profile's shell files and history into HOME.

        history comes from the profile's own .zsh_history when it has one,
        otherwise from the shared history file.

        raises:
            RestorationError: if a file cannot be copied
        """
        for name in PROMOTED_FILES:
            source = profile_dir / name
            if not source.is_file():
                continue
            self._copy(source, self.home / name, tracker)

        history = profile_dir / HISTORY_FILE
        if not history.is_file():
            history = self.paths.shared_history
        if history.is_file():
            self._copy(history, self.home / HISTORY_FILE, tracker)

        logger.info("promoted profile %s", profile_dir.name)

    def remove_entry_point(self, tracker: ChangeTracker) -> None:
        """strip the zprof section from ~/.zshenv, deleting it if nothing else remains."""
        zshenv = ZshenvManager(self.paths)
        try:
            outcome = zshenv.remove_managed_section()
        except OSError as e:
            raise tracker.fail("remove zprof section from .zshenv", e) from e
        if outcome is not None:
            tracker.record(outcome, zshenv.zshenv)

    def _copy(self, source: Path, dest: Path, tracker: ChangeTracker) -> None:
        try:
            if dest.is_symlink():
                dest.unlink()
            shutil.copy2(source, dest)
        except OSError as e:
            raise tracker.fail(f"copy {source} to {dest}", e) from e
        tracker.record("copied", dest)

    def _preserve_conflict(self, dest: Path, entry: BackedUpFile, tracker: ChangeTracker) -> None:
        if not os.path.lexists(dest) or dest.is_dir() and not dest.is_symlink():
            return
        if _matches(dest, entry):
            return
        if dest.is_file() and not dest.is_symlink() and has_managed_section(dest.read_text(errors="replace")):
            # our own wiring, replaced without a copy
            return

        backup = dest.with_name(dest.name + CONFLICT_SUFFIX)
        if os.path.lexists(backup):
            backup.unlink()
        shutil.copy2(dest, backup, follow_symlinks=False)
        tracker.record("backed-up", backup)


def _matches(path: Path, entry: BackedUpFile) -> bool:
    try:
        if path.is_symlink():
            return entry.is_symlink and hash_link(path) == entry.checksum
        return not entry.is_symlink and hash_file(path) == entry.checksum
    except OSError:
        return False
