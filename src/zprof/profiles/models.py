"""data models for shell profiles."""
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Set

from pydantic import BaseModel, Field, field_serializer

from ..domain.models import utc_now


class PromptMode(str, Enum):
    PROMPT_ENGINE = "prompt_engine"
    FRAMEWORK_THEME = "framework_theme"


class Profile(BaseModel):
    """a named shell configuration living under profiles/<name>/."""
    name: str
    framework: str
    prompt_mode: PromptMode = PromptMode.FRAMEWORK_THEME
    prompt_engine: Optional[str] = None
    framework_theme: Optional[str] = None
    plugins: Set[str] = Field(default_factory=set)
    env_vars: Dict[str, str] = Field(default_factory=dict)
    # derived from the config's active_profile pointer, never persisted
    active: bool = Field(default=False, exclude=True)
    created_at: datetime = Field(default_factory=utc_now)

    @field_serializer("plugins")
    def _sorted_plugins(self, plugins: Set[str]):
        return sorted(plugins)
