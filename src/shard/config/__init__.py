"""Configuration package exports.

Exposes:
- `Settings`: Pydantic settings for process-level options
- `Config`: dotted-path accessor over the TOML runtime configuration
- `ConfigError`, `ensure_config_file`: loading helpers
"""

from .accessor import Config, ConfigError, ensure_config_file
from .settings import Settings

__all__ = ["Config", "ConfigError", "Settings", "ensure_config_file"]
