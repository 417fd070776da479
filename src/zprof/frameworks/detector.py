"""shell config and framework detection for a home directory."""

import logging
import os
import re
from pathlib import Path
from typing import List, Optional, Tuple

from ..domain.models import ConfigFile, DetectedFramework, ShellConfigInfo

logger = logging.getLogger(__name__)

# shell config files captured from HOME, in capture order
SHELL_CONFIG_FILES = [
    ".zshrc",
    ".zshenv",
    ".zprofile",
    ".zlogin",
    ".zlogout",
    ".zsh_history",
]

# (framework, candidate install directories relative to HOME)
FRAMEWORK_DIRS = [
    ("oh-my-zsh", [".oh-my-zsh"]),
    ("zimfw", [".zim", ".zimfw"]),
    ("prezto", [".zprezto"]),
    ("zinit", [".zinit", ".local/share/zinit"]),
    ("zap", [".local/share/zap"]),
]

# (framework, config file relative to HOME, source/init line patterns); first match wins
FRAMEWORK_PATTERNS = [
    ("oh-my-zsh", ".zshrc", [r"oh-my-zsh\.sh"]),
    ("zimfw", ".zshrc", [r"zimfw\.zsh", r"\$\{?ZIM_HOME\}?/init\.zsh"]),
    ("zimfw", ".zimrc", [r"^\s*zmodule\s"]),
    ("prezto", ".zshrc", [r"zprezto/init\.zsh"]),
    ("prezto", ".zpreztorc", [r"zstyle\s+':prezto:"]),
    ("zinit", ".zshrc", [r"zinit\.zsh", r"^\s*zinit\s"]),
    ("zap", ".zshrc", [r"zap\.zsh", r"^\s*plug\s"]),
]

MAX_CONFIG_SIZE = 1_048_576  # 1MB
MAX_LINES = 10000
MAX_PLUGINS = 200
DEFAULT_OMZ_THEME = "robbyrussell"


class ShellConfigDetector:
    """scans a home directory for shell config files and an installed zsh framework.

    detection never fails: missing files, unreadable files and unknown setups
    all produce a valid ShellConfigInfo (empty file list, framework "none").
    """

    def __init__(self, home: Path):
        self.home = Path(home)

    def detect(self) -> ShellConfigInfo:
        files = self.scan_config_files()
        framework, config_path = self.classify_framework()
        install_dir = self.find_install_dir(framework) if framework != "none" else None

        detected = None
        if framework != "none":
            plugins, theme = self._extract_details(framework, config_path)
            detected = DetectedFramework(
                name=framework,
                install_path=install_dir,
                config_path=config_path,
                plugins=plugins,
                theme=theme,
            )
            logger.info("detected %s framework (config %s)", framework, config_path)
        else:
            logger.info("no existing framework detected in %s", self.home)

        return ShellConfigInfo(
            home=self.home,
            files=files,
            framework=framework,
            framework_install_dir=install_dir,
            detected_framework=detected,
        )

    def scan_config_files(self) -> List[ConfigFile]:
        found = []
        for name in SHELL_CONFIG_FILES:
            path = self.home / name
            # lexists: a dangling symlink is still part of the user's wiring
            if not os.path.lexists(path):
                continue
            if path.is_dir() and not path.is_symlink():
                logger.warning("skipping %s: expected a file, found a directory", path)
                continue

            is_symlink = path.is_symlink()
            target = None
            if is_symlink:
                try:
                    target = Path(os.readlink(path))
                except OSError as e:
                    logger.warning("could not read symlink target for %s: %s", path, e)
                    continue
            found.append(ConfigFile(path=path, name=name, is_symlink=is_symlink, symlink_target=target))
        return found

    def classify_framework(self) -> Tuple[str, Optional[Path]]:
        """best-effort pattern match over config contents. returns ("none", None) on no match."""
        for framework, config_name, patterns in FRAMEWORK_PATTERNS:
            config_path = self.home / config_name
            content = self._read_config(config_path)
            if content is None:
                continue
            for pattern in patterns:
                if re.search(pattern, content, re.MULTILINE):
                    return framework, config_path
        return "none", None

    def find_install_dir(self, framework: str) -> Optional[Path]:
        for name, candidates in FRAMEWORK_DIRS:
            if name != framework:
                continue
            for candidate in candidates:
                path = self.home / candidate
                if path.is_dir():
                    return path
        return None

    def _read_config(self, path: Path) -> Optional[str]:
        if not path.is_file():
            return None
        try:
            size = path.stat().st_size
            if size > MAX_CONFIG_SIZE:
                logger.warning("config file too large (%d bytes): %s", size, path)
                return None
            return path.read_text(errors="replace")
        except OSError as e:
            logger.warning("could not read %s: %s", path, e)
            return None

    def _extract_details(self, framework: str, config_path: Optional[Path]) -> Tuple[List[str], Optional[str]]:
        if framework != "oh-my-zsh" or config_path is None:
            return [], None
        content = self._read_config(config_path) or ""
        return extract_plugins(content), extract_theme(content)


def extract_plugins(content: str) -> List[str]:
    """extract the plugins=(...) list from an oh-my-zsh .zshrc, single or multi-line."""
    plugins: List[str] = []
    in_block = False

    for line in content.splitlines()[:MAX_LINES]:
        stripped = line.split("#", 1)[0].strip()
        if not in_block:
            if not (stripped.startswith("plugins") and "(" in stripped):
                continue
            stripped = stripped[stripped.index("(") + 1:]
            in_block = True

        closed = ")" in stripped
        if closed:
            stripped = stripped[:stripped.index(")")]
        plugins.extend(p for p in stripped.split() if p)
        if closed:
            break

    return plugins[:MAX_PLUGINS]


def extract_theme(content: str) -> str:
    """extract ZSH_THEME from an oh-my-zsh .zshrc."""
    for line in content.splitlines()[:MAX_LINES]:
        match = re.match(r"""^\s*ZSH_THEME\s*=\s*(["']?)([^"'\s]*)\1""", line)
        if match and match.group(2):
            return match.group(2)
    return DEFAULT_OMZ_THEME
