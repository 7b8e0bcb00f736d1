"""Hierarchical access to the TOML runtime configuration.

``Config`` wraps the parsed document and answers dotted-path lookups such as
``runtime.pluginAutoUpdate`` or ``plugins."shard.llm".instances``. Segments
may be quoted with single or double quotes so that keys containing dots,
slashes or ``@`` can be addressed. String values are interpolated from the
environment (``${VAR}``) when the file is read.
"""

from __future__ import annotations

import copy
import os
import re
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

_ENV_PATTERN = re.compile(r"\$\{(\w+)\}")

_MISSING = object()

DEFAULT_CONFIG = """\
# Shard configuration

# A plugin is declared by its import path. Use `package` when the pip
# distribution name differs from the top-level module.
#
# [plugins."shard.llm"]
# provider = "openai"
# model = "gpt-4o"
# apiKey = "${OPENAI_API_KEY}"
#
# Or run several instances of the same plugin:
#
# [[plugins."shard.llm".instances]]
# instanceId = "openai"
# provider = "openai"
# model = "gpt-4o"
#
# [[plugins."shard.llm".instances]]
# instanceId = "claude"
# provider = "anthropic"
# model = "claude-sonnet-4-20250514"

[agents]
# id = "default"
# name = "Shard"
# systemPrompt = "You are a helpful assistant."
# defaultModel = "gpt-4o"
# maxTurns = 10
# tools = []

[runtime]
# logLevel = "info"
# pluginAutoUpdate = false
# pluginUpdateIntervalHours = 24
# strictPluginDependencies = false
"""


class ConfigError(Exception):
    """Raised when the configuration file cannot be read or parsed."""


def parse_dot_path(key: str) -> List[str]:
    """Split a dotted path into segments, honouring quoted segments.

    ``'plugins."@shard/discord".enabled'`` becomes
    ``["plugins", "@shard/discord", "enabled"]``. Empty segments are dropped.
    """
    parts: List[str] = []
    current = ""
    quote: Optional[str] = None

    for char in key:
        if quote:
            if char == quote:
                quote = None
            else:
                current += char
        elif char in ("'", '"'):
            quote = char
        elif char == ".":
            if current:
                parts.append(current)
            current = ""
        else:
            current += char
    if current:
        parts.append(current)
    return parts


def interpolate_env(value: Any) -> Any:
    """Replace ``${VAR}`` in strings, recursing into tables and arrays.

    Unset variables are replaced with an empty string.
    """
    if isinstance(value, str):
        return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {key: interpolate_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [interpolate_env(item) for item in value]
    return value


class Config:
    """Read-only dotted-path view over a configuration mapping."""

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, Any] = dict(data or {})

    @classmethod
    def from_file(cls, path: Path | str) -> "Config":
        """Load and interpolate a TOML configuration file.

        Raises:
            ConfigError: If the file cannot be read or is not valid TOML.
        """
        path = Path(path)
        try:
            with open(path, "rb") as fh:
                raw = tomllib.load(fh)
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}") from e
        return cls(interpolate_env(raw))

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value at ``key`` or ``default`` when any segment is missing."""
        value = self._resolve(key)
        return default if value is _MISSING else value

    def has(self, key: str) -> bool:
        return self._resolve(key) is not _MISSING

    def get_all(self) -> Dict[str, Any]:
        """Return a deep copy of the whole document."""
        return copy.deepcopy(self._data)

    def _resolve(self, key: str) -> Any:
        current: Any = self._data
        for part in parse_dot_path(key):
            if not isinstance(current, Mapping) or part not in current:
                return _MISSING
            current = current[part]
        return current


def ensure_config_file(path: Path | str) -> bool:
    """Write the default configuration when ``path`` does not exist.

    Returns:
        True if a new file was created.
    """
    path = Path(path)
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG, encoding="utf-8")
    return True
