"""Built-in default configuration for repo-scaffold."""

# Default configuration that serves as the base for all other configs
DEFAULT_CONFIG = {
    "cache_dir": "~/.cache/repo-scaffold",
    "default_host": "github",
    "default_mode": "tar",
    "timeout": 30.0,
    "tokens": {},
}
