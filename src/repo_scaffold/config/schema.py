"""Pydantic models for repo-scaffold configuration and clone options."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CloneMode(str, Enum):
    """Strategy used to fetch repository contents."""

    TAR = "tar"
    GIT = "git"


class Settings(BaseModel):
    """Global settings loaded from config files and the environment."""

    cache_dir: str = Field(
        default="~/.cache/repo-scaffold",
        description="Directory holding resolved refs and downloaded archives",
    )
    default_host: str = Field(
        default="github", description="Host used when a specifier names none"
    )
    default_mode: CloneMode = Field(
        default=CloneMode.TAR, description="Fetch strategy when none is given"
    )
    timeout: Optional[float] = Field(
        default=30.0, description="Network timeout in seconds (null disables)"
    )
    tokens: dict[str, str] = Field(
        default_factory=dict, description="API tokens keyed by host (github, gitlab, ...)"
    )

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("timeout must be positive")
        return v


class CloneOptions(BaseModel):
    """Options recognized by a single clone operation."""

    force: bool = Field(
        default=False, description="Overlay files into a non-empty destination"
    )
    cache: bool = Field(
        default=False,
        description="Reuse cached ref resolutions and archives (new entries are always recorded)",
    )
    verbose: bool = Field(default=False, description="Emit additional info events")
    mode: CloneMode = Field(default=CloneMode.TAR, description="tar archive or git transport")
    timeout: Optional[float] = Field(
        default=None, description="Network timeout in seconds; falls back to settings"
    )
    token: Optional[str] = Field(
        default=None, description="API token; falls back to settings.tokens[host]"
    )
