"""test suite for domain models."""
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zprof.domain.errors import (
    OrchestratorError,
    RestorationError,
    UserDeclined,
    ValidationError,
    ValidationKind,
)
from zprof.domain.models import (
    BackedUpFile,
    BackupManifest,
    Change,
    RestorationChoice,
    RestorationKind,
    RestorationReport,
    SafetySnapshot,
)


class TestBackupManifest:
    def test_manifest_creation(self):
        manifest = BackupManifest()
        assert manifest.captured_files == []
        assert manifest.zsh_version == "unknown"
        assert manifest.captured_at.tzinfo is not None

    def test_find(self):
        manifest = BackupManifest(captured_files=[
            BackedUpFile(path=".zshrc", checksum="a" * 64),
            BackedUpFile(path=".zshenv", checksum="b" * 64),
        ])
        assert manifest.find(".zshenv").checksum == "b" * 64
        assert manifest.find(".zlogin") is None

    def test_json_roundtrip(self):
        manifest = BackupManifest(captured_files=[
            BackedUpFile(path=".zshrc", checksum="a" * 64, permissions=0o600),
        ])
        loaded = BackupManifest(**manifest.model_dump(mode="json"))
        assert loaded.captured_files[0].permissions == 0o600
        assert loaded.captured_at == manifest.captured_at


class TestSafetySnapshot:
    def test_empty_sentinel(self):
        snapshot = SafetySnapshot.empty()
        assert snapshot.is_empty
        assert snapshot.size_bytes == 0

    def test_real_snapshot(self):
        snapshot = SafetySnapshot(archive_path=Path("/tmp/final-snapshot-20260101-000000.tar.gz"), size_bytes=10)
        assert not snapshot.is_empty


class TestRestorationChoice:
    def test_constructors(self):
        assert RestorationChoice.restore_original().kind == RestorationKind.RESTORE_ORIGINAL
        assert RestorationChoice.clean_removal(keep_backups=True).keep_backups

        choice = RestorationChoice.promote_profile("work", skip_confirmation=True)
        assert choice.profile_name == "work"
        assert choice.skip_confirmation
        assert not choice.skip_safety_backup

    def test_describe(self):
        assert RestorationChoice.promote_profile("work").describe() == "promote profile 'work'"
        assert RestorationChoice.clean_removal().describe() == "clean removal"


class TestRestorationReport:
    def test_counts(self):
        report = RestorationReport(
            choice=RestorationChoice.restore_original(),
            changes=[
                Change(action="backed-up", path=Path("/h/.zshrc.zprofbackup")),
                Change(action="restored", path=Path("/h/.zshrc")),
                Change(action="removed", path=Path("/h/.zsh-profiles")),
            ],
        )
        assert report.restored_count == 1
        assert report.removed_count == 1
        assert report.touched_files[1] == Path("/h/.zshrc")

    def test_change_str(self):
        assert str(Change(action="restored", path=Path("/h/.zshrc"))) == "restored /h/.zshrc"


class TestErrors:
    def test_restoration_error_last_completed(self):
        change = Change(action="restored", path=Path("/h/.zshrc"))
        err = RestorationError("restore .zshenv", OSError("disk full"), [change])
        assert err.last_completed == change
        assert RestorationError("x", OSError("y")).last_completed is None

    def test_orchestrator_error_flags(self):
        from zprof.services.uninstall import UninstallState

        declined = OrchestratorError(UninstallState.AWAITING_CONFIRMATION, UserDeclined())
        assert declined.declined
        assert not declined.mutated

        failed = OrchestratorError(
            UninstallState.VALIDATING,
            ValidationError(ValidationKind.NOT_MANAGED, "not installed"),
        )
        assert not failed.declined
        assert "validating" in str(failed)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
