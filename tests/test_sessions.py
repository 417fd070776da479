"""test suite for active zsh session detection."""
import pytest
import subprocess
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zprof.shell.sessions import detect_active_shells


def completed(stdout="", returncode=0):
    return MagicMock(stdout=stdout, returncode=returncode)


class TestDetectActiveShells:
    @pytest.fixture(autouse=True)
    def linux(self):
        with patch("zprof.shell.sessions.platform.system", return_value="Linux"):
            with patch("zprof.shell.sessions.os.getppid", return_value=1000):
                yield

    def test_parses_pgrep_output(self):
        output = "4242 -zsh\n4243 /bin/zsh -l\n\n"
        with patch("zprof.shell.sessions.subprocess.run", return_value=completed(output)) as mock_run:
            shells = detect_active_shells()

        assert shells == ["PID 4242 (-zsh)", "PID 4243 (/bin/zsh -l)"]
        assert mock_run.call_args[0][0] == ["pgrep", "-a", "zsh"]

    def test_parent_shell_is_excluded(self):
        output = "1000 -zsh\n4242 zsh\n"
        with patch("zprof.shell.sessions.subprocess.run", return_value=completed(output)):
            assert detect_active_shells() == ["PID 4242 (zsh)"]

    def test_macos_uses_full_listing(self):
        with patch("zprof.shell.sessions.platform.system", return_value="Darwin"):
            with patch("zprof.shell.sessions.subprocess.run", return_value=completed("4242 -zsh\n")) as mock_run:
                shells = detect_active_shells()

        assert shells == ["PID 4242 (-zsh)"]
        assert mock_run.call_args[0][0] == ["pgrep", "-fl", "zsh"]

    def test_no_matches(self):
        with patch("zprof.shell.sessions.subprocess.run", return_value=completed(returncode=1)):
            assert detect_active_shells() == []

    def test_pgrep_missing(self):
        with patch("zprof.shell.sessions.subprocess.run", side_effect=FileNotFoundError("pgrep")):
            assert detect_active_shells() == []

    def test_pgrep_timeout(self):
        with patch("zprof.shell.sessions.subprocess.run", side_effect=subprocess.TimeoutExpired("pgrep", 5)):
            assert detect_active_shells() == []

    def test_unsupported_platform(self):
        with patch("zprof.shell.sessions.platform.system", return_value="Windows"):
            with patch("zprof.shell.sessions.subprocess.run") as mock_run:
                assert detect_active_shells() == []
        mock_run.assert_not_called()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
