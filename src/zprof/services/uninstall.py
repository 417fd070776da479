import logging
import os
import time
from enum import Enum
from typing import Callable, List, Optional

from ..archive.codec import ArchiveCodec, ProgressCallback
from ..backup.pre_zprof import PreZprofBackupManager
from ..backup.restore import HISTORY_FILE, PROMOTED_FILES, ChangeTracker, RestoreExecutor
from ..backup.snapshot import SafetySnapshotManager
from ..cleanup import CleanupService, managed_size
from ..config import ZprofPaths
from ..domain.errors import (
    ArchiveError,
    ManifestError,
    OrchestratorError,
    UserDeclined,
    ValidationError,
    ValidationKind,
    ZprofError,
)
from ..domain.models import (
    PreZprofBackup,
    RestorationChoice,
    RestorationKind,
    RestorationOption,
    RestorationReport,
    SafetySnapshot,
    UninstallSummary,
)
from ..profiles import ProfileManager
from ..shell.sessions import detect_active_shells
from ..shell.zdotdir import ZshenvManager
from .lock import AdvisoryLock

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[UninstallSummary], bool]


class UninstallState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SAFETY_BACKUP = "safety_backup"
    EXECUTING = "executing"
    CLEANUP = "cleanup"
    DONE = "done"
    ABORTED = "aborted"


class RestorationOrchestrator:
    """
    drives an uninstall through validation, confirmation, safety snapshot,
    the chosen restoration strategy and cleanup.

    any failure moves the run to ABORTED and surfaces as an OrchestratorError
    carrying the state it failed in and the changes made so far. the snapshot
    always completes (or is explicitly skipped) before the first destructive
    write.
    """

    def __init__(
        self,
        paths: Optional[ZprofPaths] = None,
        confirm: Optional[ConfirmCallback] = None,
        codec: Optional[ArchiveCodec] = None,
        snapshot_manager: Optional[SafetySnapshotManager] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.paths = paths or ZprofPaths()
        self.confirm = confirm
        self.codec = codec or ArchiveCodec()
        self.snapshot_manager = snapshot_manager or SafetySnapshotManager(self.paths.backups_dir, self.codec)
        self.on_progress = on_progress
        self.profiles = ProfileManager(self.paths)
        self.state = UninstallState.IDLE
        self.states: List[UninstallState] = [UninstallState.IDLE]

    def run(self, choice: RestorationChoice) -> RestorationReport:
        """
        execute one uninstall.

        args:
            choice: the restoration strategy and its modifiers

        returns:
            report naming every change, the snapshot and the states visited

        raises:
            OrchestratorError: on any validation failure, decline, snapshot
                               failure or restoration failure
        """
        started = time.monotonic()
        tracker = ChangeTracker()
        snapshot: Optional[SafetySnapshot] = None
        lock = AdvisoryLock(self.paths.lock_file)

        try:
            # 1. preconditions; flags never bypass these
            self._enter(UninstallState.VALIDATING)
            backup = self.validate(choice)
            try:
                lock.acquire()
            except OSError as e:
                raise ValidationError(
                    ValidationKind.HOME_NOT_WRITABLE,
                    f"Cannot create lock file {self.paths.lock_file}: {e}",
                ) from e

            # 2. confirmation
            self._enter(UninstallState.AWAITING_CONFIRMATION)
            if not choice.skip_confirmation:
                summary = self.build_summary(choice, backup)
                if self.confirm is None or not self.confirm(summary):
                    raise UserDeclined()

            # 3. safety snapshot before anything destructive
            self._enter(UninstallState.SAFETY_BACKUP)
            if choice.skip_safety_backup:
                logger.warning("skipping safety snapshot as requested")
            else:
                snapshot = self.snapshot_manager.snapshot(self.paths.root, on_progress=self.on_progress)

            # 4. restoration strategy
            self._enter(UninstallState.EXECUTING)
            self._execute(choice, backup, tracker)

            # 5. remove the managed state
            self._enter(UninstallState.CLEANUP)
            cleanup = CleanupService(self.paths)
            try:
                cleanup.run(snapshot, tracker, keep_backups=choice.keep_backups)
            except OSError as e:
                raise tracker.fail("remove managed state", e) from e
            finally:
                snapshot = cleanup.snapshot

            self._enter(UninstallState.DONE)
        except (ZprofError, OSError) as e:
            failed_in = self.state
            self._enter(UninstallState.ABORTED)
            cause = e if isinstance(e, ZprofError) else ZprofError(str(e))
            logger.info("uninstall aborted during %s: %s", failed_in.value, e)
            raise OrchestratorError(failed_in, cause, tracker.changes, snapshot) from e
        finally:
            lock.release()

        return RestorationReport(
            choice=choice,
            changes=tracker.changes,
            snapshot=snapshot,
            elapsed_seconds=time.monotonic() - started,
            states=[s.value for s in self.states],
        )

    def validate(self, choice: RestorationChoice) -> Optional[PreZprofBackup]:
        """
        check every precondition for choice.

        returns:
            the pre-zprof backup for restore_original, otherwise None

        raises:
            ValidationError: with the kind of the first failed precondition
        """
        home = self.paths.home
        if not home.is_dir():
            raise ValidationError(ValidationKind.HOME_INVALID, f"Home directory {home} does not exist")
        if not os.access(home, os.W_OK):
            raise ValidationError(ValidationKind.HOME_NOT_WRITABLE, f"Home directory {home} is not writable")
        if not self.paths.is_managed():
            raise ValidationError(
                ValidationKind.NOT_MANAGED,
                f"zprof is not installed ({self.paths.root} not found). Nothing to uninstall.",
            )
        self._check_root_link()

        if choice.kind == RestorationKind.RESTORE_ORIGINAL:
            return self._load_backup()

        if choice.kind == RestorationKind.PROMOTE_PROFILE:
            names = [p.name for p in self.profiles.list_profiles()]
            if not names:
                raise ValidationError(ValidationKind.NO_PROFILES, "Cannot promote a profile: no profiles found")
            if not choice.profile_name:
                raise ValidationError(ValidationKind.PROFILE_REQUIRED, "Promoting requires a profile name")
            if choice.profile_name not in names:
                raise ValidationError(
                    ValidationKind.PROFILE_NOT_FOUND,
                    f"Profile '{choice.profile_name}' not found. Available profiles: {', '.join(names)}",
                )
        return None

    def available_options(self) -> List[RestorationOption]:
        """the three strategies, each enabled or disabled with the validation reason."""
        profiles = self.profiles.list_profiles()
        candidates = [
            RestorationChoice.restore_original(),
            RestorationChoice.promote_profile(profiles[0].name if profiles else ""),
            RestorationChoice.clean_removal(),
        ]

        options = []
        for choice in candidates:
            try:
                self.validate(choice)
            except ValidationError as e:
                options.append(RestorationOption(kind=choice.kind, enabled=False, reason=str(e)))
            else:
                options.append(RestorationOption(kind=choice.kind, enabled=True))
        return options

    def build_summary(self, choice: RestorationChoice, backup: Optional[PreZprofBackup] = None) -> UninstallSummary:
        """what the confirmation callback is shown."""
        files_to_restore = 0
        history_entries = None
        source_date = None

        if choice.kind == RestorationKind.RESTORE_ORIGINAL and backup is not None:
            files_to_restore = len(backup.manifest.captured_files)
            source_date = backup.manifest.captured_at
            if backup.manifest.find(HISTORY_FILE) is not None:
                history_entries = self._count_archived_history(backup)
        elif choice.kind == RestorationKind.PROMOTE_PROFILE and choice.profile_name:
            profile_dir = self.profiles.profile_dir(choice.profile_name)
            files_to_restore = sum(1 for name in PROMOTED_FILES if (profile_dir / name).is_file())
            history = profile_dir / HISTORY_FILE
            if not history.is_file():
                history = self.paths.shared_history
            if history.is_file():
                files_to_restore += 1
                history_entries = count_history_lines(history.read_bytes())
            source_date = self.profiles.get_profile(choice.profile_name).created_at

        warnings = []
        if not PreZprofBackupManager(self.paths.home, self.paths.pre_zprof_dir, self.codec).exists():
            warnings.append("No pre-zprof backup found. The original configuration cannot be restored later.")
        shells = detect_active_shells()
        if shells:
            warnings.append(
                f"Active shell sessions detected: {', '.join(shells)}. "
                "Close all zsh sessions before uninstalling."
            )

        return UninstallSummary(
            choice=choice,
            files_to_restore=files_to_restore,
            history_entries=history_entries,
            source_date=source_date,
            profile_count=len(self.profiles.list_profiles()),
            managed_size_bytes=managed_size(self.paths.root),
            managed_root=self.paths.root,
            entry_point_managed=ZshenvManager(self.paths).is_managed(),
            snapshot_planned=not choice.skip_safety_backup,
            warnings=warnings,
        )

    def _execute(self, choice: RestorationChoice, backup: Optional[PreZprofBackup], tracker: ChangeTracker) -> None:
        executor = RestoreExecutor(self.paths, self.codec)
        if choice.kind == RestorationKind.RESTORE_ORIGINAL:
            executor.restore_original(backup, tracker)
        elif choice.kind == RestorationKind.PROMOTE_PROFILE:
            executor.promote_profile(self.profiles.profile_dir(choice.profile_name), tracker)
        else:
            executor.remove_entry_point(tracker)

    def _check_root_link(self) -> None:
        root = self.paths.root
        if not root.is_symlink():
            return
        target = root.resolve()
        home = self.paths.home.resolve()
        # cleanup removes the link target; it must not contain HOME
        if target == home or target in home.parents:
            raise ValidationError(
                ValidationKind.ROOT_UNSAFE,
                f"{root} links to {target}, which contains your home directory. "
                "Remove the link manually before uninstalling.",
            )

    def _load_backup(self) -> PreZprofBackup:
        manager = PreZprofBackupManager(self.paths.home, self.paths.pre_zprof_dir, self.codec)
        if not manager.exists():
            raise ValidationError(
                ValidationKind.BACKUP_MISSING,
                f"Cannot restore original: no pre-zprof backup at {self.paths.pre_zprof_dir}",
            )
        try:
            return manager.load()
        except ManifestError as e:
            raise ValidationError(ValidationKind.BACKUP_MISSING, f"Cannot restore original: {e}") from e

    def _count_archived_history(self, backup: PreZprofBackup) -> Optional[int]:
        entry = backup.manifest.find(HISTORY_FILE)
        if entry is None or entry.is_symlink:
            return None
        try:
            return count_history_lines(self.codec.read_member(backup.archive_path, HISTORY_FILE))
        except ArchiveError as e:
            logger.debug("could not read archived history: %s", e)
            return None

    def _enter(self, state: UninstallState) -> None:
        logger.debug("uninstall state: %s -> %s", self.state.value, state.value)
        self.state = state
        self.states.append(state)


def count_history_lines(data: bytes) -> int:
    return sum(1 for line in data.decode(errors="replace").splitlines() if line.strip())

