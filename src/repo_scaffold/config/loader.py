"""Configuration loader with merge logic and precedence handling."""

import copy
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from repo_scaffold.config.defaults import DEFAULT_CONFIG
from repo_scaffold.config.schema import Settings
from repo_scaffold.utils.paths import expand_path

USER_CONFIG_PATH = "~/.config/repo-scaffold/config.yaml"
PROJECT_CONFIG_NAME = "repo-scaffold.yaml"

# Environment variable -> host key for API tokens
TOKEN_ENV_VARS = {
    "GITHUB_TOKEN": "github",
    "GITLAB_TOKEN": "gitlab",
    "BITBUCKET_TOKEN": "bitbucket",
    "SRHT_TOKEN": "git.sr.ht",
}


def find_config_files() -> list[Path]:
    """Find configuration files in standard locations.

    Searches for configuration files in order of precedence (lowest to highest):
    1. User config (~/.config/repo-scaffold/config.yaml)
    2. Project config (./repo-scaffold.yaml in current directory)

    Returns:
        List of Path objects for existing config files, ordered from lowest
        to highest precedence (so later configs override earlier ones)
    """
    config_files = []

    user_config = expand_path(USER_CONFIG_PATH)
    if user_config.exists():
        config_files.append(user_config)

    project_config = Path.cwd() / PROJECT_CONFIG_NAME
    if project_config.exists():
        config_files.append(project_config)

    return config_files


def load_yaml_file(file_path: Path) -> dict[str, Any]:
    """Load and parse a YAML configuration file.

    Raises:
        yaml.YAMLError: If the file contains invalid YAML
        FileNotFoundError: If the file doesn't exist
    """
    with open(file_path, "r") as f:
        content = yaml.safe_load(f)
        return content if content is not None else {}


def merge_configs(configs: list[dict[str, Any]]) -> dict[str, Any]:
    """Deep merge multiple configuration dictionaries.

    Later configs override earlier ones; nested dictionaries are merged
    recursively, any other value is replaced outright.
    """
    result: dict[str, Any] = {}
    for config in configs:
        result = _deep_merge(result, config)
    return result


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides to configuration.

    Supports the following environment variables:
    - REPO_SCAFFOLD_CACHE_DIR: Override cache_dir
    - REPO_SCAFFOLD_TIMEOUT: Override timeout (seconds)
    - REPO_SCAFFOLD_MODE: Override default_mode ("tar" or "git")
    - GITHUB_TOKEN, GITLAB_TOKEN, BITBUCKET_TOKEN, SRHT_TOKEN: API tokens
    """
    result = copy.deepcopy(config)

    if cache_dir := os.getenv("REPO_SCAFFOLD_CACHE_DIR"):
        result["cache_dir"] = cache_dir

    if timeout := os.getenv("REPO_SCAFFOLD_TIMEOUT"):
        result["timeout"] = timeout

    if mode := os.getenv("REPO_SCAFFOLD_MODE"):
        result["default_mode"] = mode

    tokens = result.setdefault("tokens", {})
    for env_var, host in TOKEN_ENV_VARS.items():
        if token := os.getenv(env_var):
            tokens[host] = token

    return result


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load and merge settings from all sources.

    Precedence (lowest to highest):
    1. Built-in defaults
    2. User config (~/.config/repo-scaffold/config.yaml)
    3. Project config (./repo-scaffold.yaml)
    4. Environment variables
    5. Explicitly provided config_path (if given)
    6. CLI flags (handled by caller)

    Raises:
        ValidationError: If the merged configuration is invalid
        yaml.YAMLError: If a config file contains invalid YAML
        FileNotFoundError: If config_path is provided but doesn't exist
    """
    configs_to_merge = [copy.deepcopy(DEFAULT_CONFIG)]

    for config_file in find_config_files():
        try:
            configs_to_merge.append(load_yaml_file(config_file))
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Error loading {config_file}: {e}") from e

    merged = apply_env_overrides(merge_configs(configs_to_merge))

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        merged = merge_configs([merged, load_yaml_file(config_path)])

    return Settings(**merged)
