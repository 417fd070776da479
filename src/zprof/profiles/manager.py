import logging
import re
import shutil
from pathlib import Path
from typing import List, Optional

from ..config import ZprofPaths, get_config_value, set_config_value
from ..domain.errors import ZprofError
from ..shell.zdotdir import ZshenvManager
from .models import Profile
from .store import ProfileStore

logger = logging.getLogger(__name__)

PROFILE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class ProfileError(ZprofError):
    """raised when profile operations fail."""
    pass


class ProfileManager:
    """lists, activates and removes profiles under the managed-state root."""

    def __init__(self, paths: ZprofPaths):
        self.paths = paths
        self.store = ProfileStore(paths.profiles_dir)

    def list_profiles(self) -> List[Profile]:
        """all readable profiles, sorted by name, with the active flag filled in."""
        active = self.get_active_profile()
        profiles = self.store.load_all()
        for profile in profiles:
            profile.active = profile.name == active
        return profiles

    def get_profile(self, name: str) -> Profile:
        """
        raises:
            ProfileError: if the profile does not exist
        """
        profile = self.store.load(name)
        if profile is None:
            available = ", ".join(self.store.names()) or "none"
            raise ProfileError(
                f"Profile '{name}' not found.\n"
                f"Available profiles: {available}"
            )
        profile.active = profile.name == self.get_active_profile()
        return profile

    def profile_dir(self, name: str) -> Path:
        return self.paths.profiles_dir / name

    def get_active_profile(self) -> Optional[str]:
        return get_config_value(self.paths.config_file, "active_profile")

    def save_profile(self, profile: Profile) -> Path:
        """
        write a profile manifest.

        raises:
            ProfileError: if the name is not a valid directory name
        """
        if not PROFILE_NAME_PATTERN.match(profile.name):
            raise ProfileError(
                f"Invalid profile name '{profile.name}'. "
                "Use only letters, numbers, hyphens, and underscores."
            )
        return self.store.save(profile)

    def switch_profile(self, name: str) -> Profile:
        """
        make a profile active: update the config pointer and rewrite ~/.zshenv.

        raises:
            ProfileError: if the profile is not found or the switch fails
        """
        profile = self.get_profile(name)
        try:
            ZshenvManager(self.paths).set_active_profile(self.profile_dir(name))
            set_config_value(self.paths.config_file, "active_profile", name)
        except (OSError, RuntimeError) as e:
            raise ProfileError(f"Failed to switch to profile '{name}': {e}") from e

        profile.active = True
        logger.info("switched to profile %s", name)
        return profile

    def remove_profile(self, name: str, force: bool = False) -> None:
        """
        delete a profile directory.

        args:
            name: profile to remove
            force: if True, remove even if it is the active profile

        raises:
            ProfileError: if the profile is not found or is active without force
        """
        profile = self.get_profile(name)

        if profile.active and not force:
            raise ProfileError(
                f"'{name}' is the active profile. "
                "Switch to another profile first, or use --force to remove anyway."
            )

        try:
            if profile.active:
                set_config_value(self.paths.config_file, "active_profile", None)
                # ZDOTDIR would otherwise point at a deleted directory
                ZshenvManager(self.paths).remove_managed_section()

            profile_path = self.profile_dir(name)
            if profile_path.exists():
                shutil.rmtree(profile_path)
        except (OSError, RuntimeError) as e:
            raise ProfileError(f"Failed to remove profile '{name}': {e}") from e

        logger.info("removed profile %s", name)
