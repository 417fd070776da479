"""test suite for paths and the config file."""
import pytest
import tempfile
import shutil
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zprof.config import (
    ZprofPaths,
    get_config_value,
    get_home_dir,
    read_config,
    set_config_value,
    write_default_config,
)


class TestConfig:
    @pytest.fixture
    def temp_dir(self):
        temp_dir = Path(tempfile.mkdtemp())
        yield temp_dir
        if temp_dir.exists():
            shutil.rmtree(temp_dir)

    def test_home_from_environment(self, temp_dir, monkeypatch):
        monkeypatch.setenv("ZPROF_HOME", str(temp_dir))
        assert get_home_dir() == temp_dir
        assert ZprofPaths().root == temp_dir / ".zsh-profiles"

    def test_paths_layout(self, temp_dir):
        paths = ZprofPaths(temp_dir)
        assert paths.config_file == temp_dir / ".zsh-profiles" / "config"
        assert paths.pre_zprof_dir == temp_dir / ".zsh-profiles" / "backups" / "pre-zprof"
        assert paths.shared_history == temp_dir / ".zsh-profiles" / "shared" / ".zsh_history"
        assert paths.lock_file == temp_dir / ".zsh-profiles.lock"
        assert paths.preserved_snapshots_dir == temp_dir / ".zsh-profiles-snapshots"

    def test_is_managed_requires_config(self, temp_dir):
        paths = ZprofPaths(temp_dir)
        paths.root.mkdir()
        assert not paths.is_managed()
        write_default_config(paths.config_file)
        assert paths.is_managed()

    def test_missing_config_reads_empty(self, temp_dir):
        assert read_config(temp_dir / "config") == {}

    def test_set_preserves_other_values(self, temp_dir):
        config_file = temp_dir / "config"
        write_default_config(config_file)
        set_config_value(config_file, "active_profile", "work")
        set_config_value(config_file, "default_framework", "oh-my-zsh")

        assert get_config_value(config_file, "active_profile") == "work"
        assert get_config_value(config_file, "default_framework") == "oh-my-zsh"

    def test_empty_value_reads_none(self, temp_dir):
        config_file = temp_dir / "config"
        write_default_config(config_file)
        assert get_config_value(config_file, "active_profile") is None

    def test_comments_and_blank_lines_ignored(self, temp_dir):
        config_file = temp_dir / "config"
        config_file.write_text("# zprof\n\nactive_profile = work\n")
        assert read_config(config_file) == {"active_profile": "work"}

    def test_default_config_does_not_overwrite(self, temp_dir):
        config_file = temp_dir / "config"
        config_file.write_text("active_profile=work\n")
        write_default_config(config_file)
        assert get_config_value(config_file, "active_profile") == "work"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
