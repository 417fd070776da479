"""test suite for the safety snapshot manager."""
import pytest
import os
import re
import stat
from datetime import datetime
import tempfile
import shutil
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zprof.archive.codec import ArchiveCodec
from zprof.backup.snapshot import SafetySnapshotManager
from zprof.domain.errors import ArchiveError, SnapshotError


def tree_state(root: Path):
    """relative path -> content (or None for directories) for everything under root."""
    state = {}
    for path in sorted(root.rglob("*")):
        rel = str(path.relative_to(root))
        state[rel] = None if path.is_dir() else path.read_bytes()
    return state


class TestSafetySnapshotManager:
    @pytest.fixture
    def home(self):
        """create a temporary home directory."""
        temp_dir = Path(tempfile.mkdtemp())
        yield temp_dir
        if temp_dir.exists():
            shutil.rmtree(temp_dir)

    @pytest.fixture
    def root(self, home):
        root = home / ".zsh-profiles"
        (root / "profiles" / "work").mkdir(parents=True)
        (root / "profiles" / "work" / ".zshrc").write_text("# work\n")
        (root / "shared").mkdir()
        (root / "shared" / ".zsh_history").write_text(": 1700000000:0;ls\n")
        (root / "config").write_text("active_profile=work\n")
        return root

    @pytest.fixture
    def manager(self, root):
        return SafetySnapshotManager(root / "backups")

    def test_missing_root_gives_empty_sentinel(self, home):
        manager = SafetySnapshotManager(home / ".zsh-profiles" / "backups")
        snapshot = manager.snapshot(home / ".zsh-profiles")
        assert snapshot.is_empty
        assert snapshot.size_bytes == 0
        assert not (home / ".zsh-profiles").exists()

    def test_empty_root_gives_empty_sentinel(self, home):
        root = home / ".zsh-profiles"
        root.mkdir()
        snapshot = SafetySnapshotManager(root / "backups").snapshot(root)
        assert snapshot.is_empty
        assert list(root.iterdir()) == []

    def test_snapshot_name_and_mode(self, manager, root):
        snapshot = manager.snapshot(root)

        assert not snapshot.is_empty
        assert snapshot.archive_path.parent == root / "backups"
        assert re.match(r"^final-snapshot-\d{8}-\d{6}\.tar\.gz$", snapshot.archive_path.name)
        assert stat.S_IMODE(snapshot.archive_path.stat().st_mode) == 0o600
        assert snapshot.size_bytes == snapshot.archive_path.stat().st_size

    def test_snapshot_contains_tree(self, manager, root):
        snapshot = manager.snapshot(root)
        names = {m.name for m in ArchiveCodec().list_members(snapshot.archive_path)}
        assert ".zsh-profiles/config" in names
        assert ".zsh-profiles/profiles/work/.zshrc" in names
        assert ".zsh-profiles/shared/.zsh_history" in names

    def test_extract_and_rearchive_is_equivalent(self, manager, root, home):
        codec = ArchiveCodec()
        snapshot = manager.snapshot(root)

        restored = home / "restored"
        codec.extract_all(snapshot.archive_path, restored)
        expected = tree_state(root)
        # the snapshot was written into backups/ after the tree was read
        expected = {k: v for k, v in expected.items() if not k.startswith("backups")}
        assert tree_state(restored / ".zsh-profiles") == expected

        again = home / "again.tar.gz"
        codec.write_tree(restored / ".zsh-profiles", again)
        first = {m.name for m in codec.list_members(snapshot.archive_path)}
        second = {m.name for m in codec.list_members(again)}
        assert first == second

    def test_symlinks_are_followed(self, manager, root, home):
        outside = home / "dotfiles"
        outside.mkdir()
        (outside / "aliases.zsh").write_text("alias g=git\n")
        os.symlink(outside / "aliases.zsh", root / "shared" / "aliases.zsh")

        snapshot = manager.snapshot(root)
        content = ArchiveCodec().read_member(snapshot.archive_path, ".zsh-profiles/shared/aliases.zsh")
        assert content == b"alias g=git\n"

    def test_failure_leaves_root_unchanged(self, manager, root, home):
        before = tree_state(root)
        with patch.object(ArchiveCodec, "_add", side_effect=OSError("No space left on device")):
            with pytest.raises(SnapshotError) as exc_info:
                manager.snapshot(root)

        assert isinstance(exc_info.value.cause, ArchiveError)
        assert tree_state(root) == before
        assert not (root / "backups").exists()
        assert [p for p in home.iterdir() if p.name.endswith(".partial")] == []

    def test_dangling_symlink_aborts(self, manager, root):
        os.symlink(root / "nowhere", root / "shared" / "broken")
        with pytest.raises(SnapshotError):
            manager.snapshot(root)
        assert manager.list_snapshots() == []

    def test_same_second_snapshots_do_not_collide(self, manager, root):
        fixed = datetime(2026, 3, 1, 12, 0, 0)
        with patch("zprof.backup.snapshot.datetime") as mock_datetime:
            mock_datetime.now.return_value = fixed
            first = manager.snapshot(root)
            second = manager.snapshot(root)

        assert first.archive_path.name == "final-snapshot-20260301-120000.tar.gz"
        assert second.archive_path.name == "final-snapshot-20260301-120000_01.tar.gz"
        assert manager.latest() == second.archive_path

        assert first.archive_path != second.archive_path
        assert first.archive_path.exists()
        assert second.archive_path.exists()

    def test_names_sort_in_creation_order(self, root, home):
        manager = SafetySnapshotManager(home / "snapshots")
        stamps = [datetime(2026, 3, 1, 12, 0, 0)] * 11 + [datetime(2026, 3, 1, 12, 0, 1)]
        created = []
        with patch("zprof.backup.snapshot.datetime") as mock_datetime:
            for stamp in stamps:
                mock_datetime.now.return_value = stamp
                created.append(manager.snapshot(root).archive_path.name)

        assert sorted(created) == created
        assert [p.name for p in manager.list_snapshots()] == created
        assert created[10] == "final-snapshot-20260301-120000_10.tar.gz"

    def test_latest(self, manager, root):
        assert manager.latest() is None
        first = manager.snapshot(root)
        second = manager.snapshot(root)
        assert manager.list_snapshots()[0] == first.archive_path
        assert manager.latest() == second.archive_path


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
