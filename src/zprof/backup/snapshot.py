import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..archive.codec import ArchiveCodec, ProgressCallback
from ..domain.errors import ArchiveError, SnapshotError
from ..domain.models import SafetySnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "final-snapshot-"
SNAPSHOT_SUFFIX = ".tar.gz"


class SafetySnapshotManager:
    """
    archives the whole managed-state root before anything destructive happens.

    the archive is staged outside the root (in its parent directory by
    default) and only renamed into backups/ once it is complete, so an aborted
    snapshot leaves the root exactly as it was.
    """

    def __init__(
        self,
        backups_dir: Path,
        codec: Optional[ArchiveCodec] = None,
        staging_dir: Optional[Path] = None,
    ):
        self.backups_dir = Path(backups_dir)
        self.codec = codec or ArchiveCodec()
        self.staging_dir = staging_dir

    def snapshot(self, source_root: Path, on_progress: Optional[ProgressCallback] = None) -> SafetySnapshot:
        """
        create a timestamped, owner-only archive of source_root.

        symlinks are followed so the archive holds their targets' content.

        returns:
            the new snapshot, or the empty sentinel when source_root is
            missing or has no entries

        raises:
            SnapshotError: if any entry cannot be read or the archive cannot
                           be written; nothing is left at the output path
        """
        source_root = Path(source_root)
        if not source_root.is_dir() or not any(source_root.iterdir()):
            logger.info("nothing to snapshot at %s", source_root)
            return SafetySnapshot.empty()

        created_at = datetime.now().astimezone()
        output = self._next_path(created_at)
        staging = Path(self.staging_dir) if self.staging_dir else source_root.parent

        logger.info("creating safety snapshot of %s at %s", source_root, output)
        try:
            size = self.codec.write_tree(
                source_root,
                output,
                follow_symlinks=True,
                mode=0o600,
                on_progress=on_progress,
                staging_dir=staging,
            )
        except ArchiveError as e:
            raise SnapshotError(source_root, e) from e

        return SafetySnapshot(archive_path=output, size_bytes=size, created_at=created_at)

    def list_snapshots(self) -> List[Path]:
        """existing snapshots, oldest first (names sort by creation time)."""
        if not self.backups_dir.is_dir():
            return []
        return sorted(self.backups_dir.glob(f"{SNAPSHOT_PREFIX}*{SNAPSHOT_SUFFIX}"))

    def latest(self) -> Optional[Path]:
        snapshots = self.list_snapshots()
        return snapshots[-1] if snapshots else None

    def _next_path(self, created_at: datetime) -> Path:
        # "_NN" sorts after the bare ".tar.gz" name and before the next second
        stamp = created_at.strftime("%Y%m%d-%H%M%S")
        path = self.backups_dir / f"{SNAPSHOT_PREFIX}{stamp}{SNAPSHOT_SUFFIX}"
        counter = 1
        while path.exists():
            path = self.backups_dir / f"{SNAPSHOT_PREFIX}{stamp}_{counter:02d}{SNAPSHOT_SUFFIX}"
            counter += 1
        return path
