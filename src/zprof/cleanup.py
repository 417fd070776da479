"""removal of the managed-state root at the end of an uninstall."""

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from .backup.restore import ChangeTracker
from .config import ZprofPaths
from .domain.models import SafetySnapshot
from .shell.zdotdir import ZshenvManager

logger = logging.getLogger(__name__)

KEPT_WITH_BACKUPS = "backups"


class CleanupService:
    """tears down the managed-state root, keeping the safety snapshot reachable."""

    def __init__(self, paths: ZprofPaths):
        self.paths = paths
        # where the run's snapshot currently lives, kept current if run fails
        self.snapshot: Optional[SafetySnapshot] = None

    def run(self, snapshot: Optional[SafetySnapshot], tracker: ChangeTracker, keep_backups: bool = False) -> Optional[SafetySnapshot]:
        """
        args:
            snapshot: the snapshot taken for this run, if any
            tracker: change log for the run
            keep_backups: keep backups/ inside the root instead of removing everything

        returns:
            the snapshot descriptor after cleanup; relocated snapshots get a
            new descriptor pointing at ~/.zsh-profiles-snapshots/

        raises:
            RestorationError: if part of the tree cannot be removed
            OSError: if anything else cannot be removed or moved
        """
        self.snapshot = snapshot
        outcome = ZshenvManager(self.paths).remove_managed_section()
        if outcome is not None:
            tracker.record(outcome, self.paths.zshenv)

        if keep_backups:
            self._remove_all_but_backups(tracker)
            return snapshot

        if snapshot is not None and not snapshot.is_empty:
            snapshot = self._relocate(snapshot, tracker)
            self.snapshot = snapshot

        self._remove_root(tracker)
        return snapshot

    def _remove_root(self, tracker: ChangeTracker) -> None:
        root = self.paths.root
        if root.is_symlink():
            # a synced root: remove the real tree, then the link itself
            target = root.resolve()
            if target.is_dir():
                _remove_tree(target, tracker)
            root.unlink()
            tracker.record("removed", root)
            logger.info("removed %s (link to %s)", root, target)
            return

        if root.exists():
            _remove_tree(root, tracker)
            logger.info("removed %s", root)

    def _relocate(self, snapshot: SafetySnapshot, tracker: ChangeTracker) -> SafetySnapshot:
        source = snapshot.archive_path
        try:
            source.relative_to(self.paths.root)
        except ValueError:
            # already outside the root
            return snapshot

        target_dir = self.paths.preserved_snapshots_dir
        target_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(target_dir, 0o700)
        target = target_dir / source.name
        shutil.move(str(source), str(target))
        tracker.record("relocated", target)
        logger.info("moved safety snapshot to %s", target)
        return SafetySnapshot(archive_path=target, size_bytes=snapshot.size_bytes, created_at=snapshot.created_at)

    def _remove_all_but_backups(self, tracker: ChangeTracker) -> None:
        root = self.paths.root
        if not root.is_dir():
            return
        for entry in sorted(root.iterdir()):
            if entry.name == KEPT_WITH_BACKUPS:
                continue
            if entry.is_dir() and not entry.is_symlink():
                _remove_tree(entry, tracker)
            else:
                entry.unlink()
                tracker.record("removed", entry)
        logger.info("removed %s except %s/", root, KEPT_WITH_BACKUPS)


def _remove_tree(path: Path, tracker: ChangeTracker) -> None:
    """
    raises:
        RestorationError: if rmtree fails; the tree is recorded as partly removed
    """
    try:
        shutil.rmtree(path)
    except OSError as e:
        tracker.record("partly-removed", path)
        raise tracker.fail(f"remove {path} (it may be partly removed)", e) from e
    tracker.record("removed", path)


def managed_size(root: Path) -> int:
    """total bytes of regular files under root, not following symlinks."""
    total = 0
    if not root.is_dir():
        return 0
    for dirpath, _, filenames in os.walk(root):
        for name in filenames:
            path = os.path.join(dirpath, name)
            if not os.path.islink(path):
                try:
                    total += os.path.getsize(path)
                except OSError:
                    continue
    return total
