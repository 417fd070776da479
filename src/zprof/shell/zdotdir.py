"""
~/.zshenv wiring: points ZDOTDIR at the active profile and shares history.

the managed section sits at the top of ~/.zshenv between two marker lines;
anything the user wrote outside it is preserved on every rewrite.
"""

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config import ZprofPaths

logger = logging.getLogger(__name__)

SECTION_START = "# ========== Managed by zprof - DO NOT EDIT THIS SECTION =========="
SECTION_END = "# ==================================================================="

HISTORY_LINES = [
    "# Shared command history across all profiles",
    'export HISTFILE="$HOME/.zsh-profiles/shared/.zsh_history"',
    "export HISTSIZE=10000",
    "export SAVEHIST=10000",
    "setopt INC_APPEND_HISTORY",
    "setopt SHARE_HISTORY",
    "setopt HIST_IGNORE_DUPS",
]


def has_managed_section(content: str) -> bool:
    return SECTION_START in content or "Managed by zprof" in content


def strip_managed_section(content: str) -> str:
    """returns content with the zprof-managed section removed."""
    kept = []
    in_section = False
    for line in content.splitlines():
        if not in_section and "Managed by zprof" in line:
            in_section = True
            continue
        if in_section:
            if line.startswith("# ====="):
                in_section = False
            continue
        kept.append(line)

    # the writer separates the section from user content with one blank line
    while kept and not kept[0].strip():
        kept.pop(0)
    return "\n".join(kept) + "\n" if kept else ""


def render_section(profile_dir: Path, backup: Optional[Path] = None) -> str:
    lines = [SECTION_START]
    if backup is not None:
        lines.append(f"# Original .zshenv backed up to: {backup}")
    lines.append(f'export ZDOTDIR="{profile_dir}"')
    lines.extend(HISTORY_LINES)
    lines.append(SECTION_END)
    return "\n".join(lines) + "\n"


class ZshenvManager:
    """reads and rewrites the managed section of ~/.zshenv."""

    def __init__(self, paths: ZprofPaths):
        self.paths = paths

    @property
    def zshenv(self) -> Path:
        return self.paths.zshenv

    def read(self) -> str:
        if not self.zshenv.is_file():
            return ""
        return self.zshenv.read_text(errors="replace")

    def is_managed(self) -> bool:
        return has_managed_section(self.read())

    def set_active_profile(self, profile_dir: Path) -> Path:
        """
        write the managed section pointing ZDOTDIR at profile_dir.

        a pre-existing ~/.zshenv is copied to cache/backups first.

        raises:
            FileNotFoundError: if profile_dir does not exist
            OSError: if ~/.zshenv cannot be written
        """
        if not profile_dir.is_dir():
            raise FileNotFoundError(f"Profile directory does not exist: {profile_dir}")

        existing = self.read()
        backup = self.backup() if self.zshenv.exists() else None
        user_content = strip_managed_section(existing)

        section = render_section(profile_dir, backup)
        content = section if not user_content.strip() else f"{section}\n{user_content}"
        self.zshenv.write_text(content)
        logger.debug("set ZDOTDIR to %s", profile_dir)
        return self.zshenv

    def backup(self) -> Path:
        """copy ~/.zshenv to cache/backups/.zshenv.backup.<timestamp>."""
        backup_dir = self.paths.zshenv_backups_dir
        backup_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        target = backup_dir / f".zshenv.backup.{timestamp}"
        shutil.copy2(self.zshenv, target)
        logger.debug("backed up %s to %s", self.zshenv, target)
        return target

    def remove_managed_section(self) -> Optional[str]:
        """
        strip the managed section from ~/.zshenv.

        returns:
            "removed" if nothing else remained and the file was deleted,
            "rewritten" if user content was kept, None if there was no section
        """
        if not self.zshenv.is_file():
            return None
        content = self.read()
        if not has_managed_section(content):
            return None

        remaining = strip_managed_section(content)
        if remaining.strip():
            self.zshenv.write_text(remaining)
            logger.info("removed zprof section from %s", self.zshenv)
            return "rewritten"

        self.zshenv.unlink()
        logger.info("removed %s", self.zshenv)
        return "removed"
