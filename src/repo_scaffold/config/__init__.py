"""Configuration loading and management."""

from repo_scaffold.config.loader import (
    find_config_files,
    load_settings,
    merge_configs,
)
from repo_scaffold.config.schema import CloneMode, CloneOptions, Settings

__all__ = [
    # Loader functions
    "find_config_files",
    "load_settings",
    "merge_configs",
    # Schema classes
    "CloneMode",
    "CloneOptions",
    "Settings",
]
