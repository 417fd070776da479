import os
from pathlib import Path
from typing import Dict, Optional

VERSION = "0.1.0"

ZPROF_DIR_NAME = ".zsh-profiles"
CONFIG_FILE_NAME = "config"
LOCK_FILE_NAME = ".zsh-profiles.lock"
PRESERVED_SNAPSHOTS_DIR_NAME = ".zsh-profiles-snapshots"

DEFAULT_CONFIG = {
    "active_profile": "",
    "default_framework": "",
}


def get_home_dir() -> Path:
    """resolve the home directory, honoring ZPROF_HOME for tests and sandboxes."""
    env_home = os.environ.get("ZPROF_HOME")
    return Path(env_home).expanduser() if env_home else Path.home()


class ZprofPaths:
    """every well-known location zprof reads or writes, relative to one home directory."""

    def __init__(self, home: Optional[Path] = None):
        self.home = Path(home) if home else get_home_dir()

    @property
    def root(self) -> Path:
        return self.home / ZPROF_DIR_NAME

    @property
    def config_file(self) -> Path:
        return self.root / CONFIG_FILE_NAME

    @property
    def profiles_dir(self) -> Path:
        return self.root / "profiles"

    @property
    def shared_dir(self) -> Path:
        return self.root / "shared"

    @property
    def shared_history(self) -> Path:
        return self.shared_dir / ".zsh_history"

    @property
    def cache_dir(self) -> Path:
        return self.root / "cache"

    @property
    def zshenv_backups_dir(self) -> Path:
        return self.cache_dir / "backups"

    @property
    def backups_dir(self) -> Path:
        return self.root / "backups"

    @property
    def pre_zprof_dir(self) -> Path:
        return self.backups_dir / "pre-zprof"

    @property
    def zshenv(self) -> Path:
        return self.home / ".zshenv"

    @property
    def lock_file(self) -> Path:
        # outside the root so that removing the root never removes a held lease
        return self.home / LOCK_FILE_NAME

    @property
    def preserved_snapshots_dir(self) -> Path:
        return self.home / PRESERVED_SNAPSHOTS_DIR_NAME

    def is_managed(self) -> bool:
        """true when the managed-state root and its config file both exist."""
        return self.root.is_dir() and self.config_file.is_file()


def read_config(config_file: Path) -> Dict[str, str]:
    """read the key=value config file; unreadable or missing files read as empty."""
    config: Dict[str, str] = {}
    if not config_file.exists():
        return config

    try:
        with open(config_file, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" in line:
                    key, value = line.split("=", 1)
                    config[key.strip()] = value.strip()
    except (IOError, PermissionError, OSError):
        # if we can't read the file, treat as not configured
        return {}
    return config


def write_config(config_file: Path, config: Dict[str, str]) -> None:
    config_file.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(config_file, "w") as f:
            for key, value in config.items():
                f.write(f"{key}={value}\n")
    except (IOError, PermissionError, OSError) as e:
        raise RuntimeError(f"failed to write config file {config_file}: {e}") from e


def get_config_value(config_file: Path, key: str) -> Optional[str]:
    """get a single config value; empty values read as None."""
    value = read_config(config_file).get(key)
    return value or None


def set_config_value(config_file: Path, key: str, value: Optional[str]) -> None:
    """set a config value, preserving other config values."""
    config = read_config(config_file)
    config[key] = value or ""
    write_config(config_file, config)


def write_default_config(config_file: Path) -> None:
    """write the default config unless one already exists."""
    if config_file.exists():
        return
    write_config(config_file, dict(DEFAULT_CONFIG))
