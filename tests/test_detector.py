"""test suite for shell config detection."""
import pytest
import os
import tempfile
import shutil
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zprof.frameworks.detector import (
    MAX_CONFIG_SIZE,
    ShellConfigDetector,
    extract_plugins,
    extract_theme,
)


class TestShellConfigDetector:
    @pytest.fixture
    def home(self):
        """create a temporary home directory."""
        temp_dir = Path(tempfile.mkdtemp())
        yield temp_dir
        if temp_dir.exists():
            shutil.rmtree(temp_dir)

    def test_empty_home(self, home):
        info = ShellConfigDetector(home).detect()
        assert info.files == []
        assert info.framework == "none"
        assert info.detected_framework is None

    def test_missing_home_does_not_fail(self, home):
        info = ShellConfigDetector(home / "nope").detect()
        assert info.files == []
        assert info.framework == "none"

    def test_oh_my_zsh_detected(self, home):
        (home / ".oh-my-zsh").mkdir()
        (home / ".zshrc").write_text(
            'export ZSH="$HOME/.oh-my-zsh"\n'
            'ZSH_THEME="agnoster"\n'
            "plugins=(git docker)\n"
            "source $ZSH/oh-my-zsh.sh\n"
        )

        info = ShellConfigDetector(home).detect()
        assert info.framework == "oh-my-zsh"
        assert info.file_names == [".zshrc"]
        assert info.framework_install_dir == home / ".oh-my-zsh"
        assert info.detected_framework.theme == "agnoster"
        assert info.detected_framework.plugins == ["git", "docker"]

    def test_files_listed_in_order(self, home):
        for name in [".zsh_history", ".zlogin", ".zshrc", ".zshenv"]:
            (home / name).write_text("#\n")

        info = ShellConfigDetector(home).detect()
        assert info.file_names == [".zshrc", ".zshenv", ".zlogin", ".zsh_history"]

    def test_symlink_recorded_with_target(self, home):
        dotfiles = home / "dotfiles"
        dotfiles.mkdir()
        (dotfiles / "zshrc").write_text("# mine\n")
        os.symlink(dotfiles / "zshrc", home / ".zshrc")

        info = ShellConfigDetector(home).detect()
        entry = info.files[0]
        assert entry.is_symlink
        assert entry.symlink_target == dotfiles / "zshrc"

    def test_dangling_symlink_is_recorded(self, home):
        os.symlink("missing/zshenv", home / ".zshenv")

        info = ShellConfigDetector(home).detect()
        assert info.file_names == [".zshenv"]
        assert info.files[0].symlink_target == Path("missing/zshenv")

    def test_directory_in_place_of_file_is_skipped(self, home):
        (home / ".zshrc").mkdir()
        assert ShellConfigDetector(home).detect().files == []

    def test_zimfw_from_zimrc(self, home):
        (home / ".zim").mkdir()
        (home / ".zimrc").write_text("zmodule git\nzmodule prompt-pwd\n")

        info = ShellConfigDetector(home).detect()
        assert info.framework == "zimfw"
        assert info.framework_install_dir == home / ".zim"

    def test_prezto_detected(self, home):
        (home / ".zprezto").mkdir()
        (home / ".zshrc").write_text('source "${ZDOTDIR:-$HOME}/.zprezto/init.zsh"\n')
        assert ShellConfigDetector(home).detect().framework == "prezto"

    def test_zinit_detected_in_xdg_location(self, home):
        (home / ".local" / "share" / "zinit").mkdir(parents=True)
        (home / ".zshrc").write_text('source "$HOME/.local/share/zinit/zinit.git/zinit.zsh"\n')

        info = ShellConfigDetector(home).detect()
        assert info.framework == "zinit"
        assert info.framework_install_dir == home / ".local" / "share" / "zinit"

    def test_zap_detected(self, home):
        (home / ".zshrc").write_text('plug "zsh-users/zsh-autosuggestions"\n')
        info = ShellConfigDetector(home).detect()
        assert info.framework == "zap"
        assert info.framework_install_dir is None

    def test_plain_zshrc_has_no_framework(self, home):
        (home / ".zshrc").write_text("alias ll='ls -l'\n")
        info = ShellConfigDetector(home).detect()
        assert info.framework == "none"
        assert info.file_names == [".zshrc"]

    def test_oversized_config_is_not_classified(self, home):
        padding = "#" * (MAX_CONFIG_SIZE + 1)
        (home / ".zshrc").write_text(f"source $ZSH/oh-my-zsh.sh\n{padding}\n")

        info = ShellConfigDetector(home).detect()
        assert info.framework == "none"
        assert info.file_names == [".zshrc"]


class TestExtraction:
    def test_multiline_plugins(self):
        content = "plugins=(\n  git\n  docker  # containers\n  kubectl\n)\n"
        assert extract_plugins(content) == ["git", "docker", "kubectl"]

    def test_no_plugins(self):
        assert extract_plugins("export FOO=1\n") == []

    def test_theme_single_quotes(self):
        assert extract_theme("ZSH_THEME='robbyrussell'\n") == "robbyrussell"

    def test_theme_default(self):
        assert extract_theme("plugins=(git)\n") == "robbyrussell"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
