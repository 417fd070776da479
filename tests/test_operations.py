"""test suite for the front-end entry points."""
import pytest
import tempfile
import shutil
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zprof import operations
from zprof.config import ZprofPaths
from zprof.domain.errors import LockError, OrchestratorError
from zprof.domain.models import RestorationChoice
from zprof.services.lock import AdvisoryLock


@pytest.fixture
def home():
    """create a temporary home with an oh-my-zsh setup."""
    temp_dir = Path(tempfile.mkdtemp())
    (temp_dir / ".oh-my-zsh").mkdir()
    (temp_dir / ".zshrc").write_text('plugins=(git)\nsource $ZSH/oh-my-zsh.sh\n')
    with patch("zprof.backup.pre_zprof.get_zsh_version", return_value="zsh 5.9"):
        yield temp_dir
    if temp_dir.exists():
        shutil.rmtree(temp_dir)


class TestOperations:
    def test_detect(self, home):
        info = operations.detect_shell_config(home)
        assert info.framework == "oh-my-zsh"
        assert info.file_names == [".zshrc"]

    def test_detect_uses_zprof_home(self, home, monkeypatch):
        monkeypatch.setenv("ZPROF_HOME", str(home))
        assert operations.detect_shell_config().home == home

    def test_capture(self, home):
        backup = operations.capture_pre_zprof_backup(home=home)
        assert backup.manifest.detected_framework.name == "oh-my-zsh"
        assert backup.manifest.find(".zshrc") is not None
        assert not ZprofPaths(home).lock_file.exists()

    def test_capture_while_locked(self, home):
        with AdvisoryLock(ZprofPaths(home).lock_file):
            with pytest.raises(LockError):
                operations.capture_pre_zprof_backup(home=home)

    def test_snapshot_skip(self, home):
        assert operations.create_safety_snapshot(skip=True, home=home) is None

    def test_snapshot_of_missing_root(self, home):
        snapshot = operations.create_safety_snapshot(home=home)
        assert snapshot.is_empty

    def test_snapshot_reports_progress(self, home):
        operations.capture_pre_zprof_backup(home=home)
        calls = []
        snapshot = operations.create_safety_snapshot(home=home, on_progress=lambda d, t: calls.append((d, t)))

        assert snapshot.archive_path.exists()
        assert calls
        assert calls[-1][0] == calls[-1][1]

    def test_run_restoration_not_managed(self, home):
        with pytest.raises(OrchestratorError):
            operations.run_restoration(RestorationChoice.clean_removal(skip_confirmation=True), home=home)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
