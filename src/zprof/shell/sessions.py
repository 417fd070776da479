"""best-effort detection of running zsh sessions."""

import logging
import os
import platform
import subprocess
from typing import List

logger = logging.getLogger(__name__)


def detect_active_shells() -> List[str]:
    """
    list running zsh processes as "PID <pid> (<command>)".

    the shell that launched zprof is left out. any failure (no pgrep,
    unsupported platform, timeout) returns an empty list.
    """
    system = platform.system()
    if system == "Linux":
        args = ["pgrep", "-a", "zsh"]
    elif system == "Darwin":
        args = ["pgrep", "-fl", "zsh"]
    else:
        return []

    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("could not list zsh processes: %s", e)
        return []
    # pgrep exits 1 when nothing matched
    if result.returncode != 0:
        return []

    parent = str(os.getppid())
    shells = []
    for line in result.stdout.splitlines():
        line = line.strip()
        if not line:
            continue
        pid, _, command = line.partition(" ")
        if pid == parent:
            continue
        shells.append(f"PID {pid} ({command.strip()})" if command else line)
    return shells
