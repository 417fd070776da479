"""shell profile management."""
from .manager import ProfileManager, ProfileError
from .store import ProfileStore
from .models import Profile, PromptMode

__all__ = [
    "ProfileManager",
    "ProfileError",
    "ProfileStore",
    "Profile",
    "PromptMode",
]
