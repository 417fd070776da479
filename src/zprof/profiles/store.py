import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from .models import Profile

logger = logging.getLogger(__name__)

PROFILE_MANIFEST = "profile.json"


class ProfileStore:
    """handles profile persistence to per-profile JSON manifests."""

    def __init__(self, profiles_dir: Path):
        self.profiles_dir = profiles_dir

    def manifest_path(self, name: str) -> Path:
        return self.profiles_dir / name / PROFILE_MANIFEST

    def names(self) -> List[str]:
        """names of every directory under profiles/ that carries a manifest, sorted."""
        if not self.profiles_dir.is_dir():
            return []
        return sorted(
            p.name for p in self.profiles_dir.iterdir()
            if p.is_dir() and (p / PROFILE_MANIFEST).is_file()
        )

    def load(self, name: str) -> Optional[Profile]:
        """load one profile; missing or corrupted manifests return None."""
        path = self.manifest_path(name)
        if not path.is_file():
            return None

        try:
            with open(path, "r") as f:
                data = json.load(f)
            return Profile(**data)
        except (OSError, json.JSONDecodeError, TypeError, PydanticValidationError) as e:
            logger.warning("skipping unreadable profile manifest %s: %s", path, e)
            return None

    def load_all(self) -> List[Profile]:
        profiles = []
        for name in self.names():
            profile = self.load(name)
            if profile is not None:
                profiles.append(profile)
        return profiles

    def save(self, profile: Profile) -> Path:
        """save a profile manifest, creating its directory."""
        path = self.manifest_path(profile.name)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(profile.model_dump(mode="json"), f, indent=2, sort_keys=True)
        return path
