"""Process-level settings for the Shard runtime.

This module defines a Pydantic ``BaseSettings`` model for options that belong
to the process rather than to the runtime configuration file: where the file
lives, how verbose logging is, where the HTTP control surface listens, and the
provider credentials used as a fallback by the bundled LangChain model
provider. Environment variables are read with the ``SHARD_`` prefix
(case-insensitive); ``SHARD_CONFIG`` points at the TOML configuration file.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def default_config_dir() -> Path:
    """Return the OS-specific directory holding ``config.toml``.

    Windows uses ``%APPDATA%/shard``; everything else follows XDG and uses
    ``$XDG_CONFIG_HOME/shard`` (``~/.config/shard`` when unset).
    """
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA") or str(
            Path(os.environ.get("USERPROFILE", "")) / "AppData" / "Roaming"
        )
        return Path(app_data) / "shard"
    xdg = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(xdg) / "shard"


class Settings(BaseSettings):
    """Process settings with environment variable support and validation.

    Notes:
    - Values can be provided via environment variables with prefix ``SHARD_``
      (e.g., ``SHARD_API_PORT=8080``), or from a ``.env`` file.
    - ``SHARD_CONFIG`` selects the runtime configuration file; the ``--config``
      command line flag takes precedence over it.
    """

    app_name: str = Field(default="Shard", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    config: Optional[str] = Field(
        default=None, description="Path to the TOML runtime configuration"
    )

    default_llm_provider: str = Field(
        default="openai", description="Default LLM provider"
    )
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    anthropic_api_key: Optional[str] = Field(
        default=None, description="Anthropic API key"
    )
    google_api_key: Optional[str] = Field(default=None, description="Google API key")

    api_host: str = Field(default="127.0.0.1", description="API server host")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API server port")
    cors_origins: List[str] = Field(default=["*"], description="CORS allowed origins")

    @field_validator("default_llm_provider")
    @classmethod
    def validate_llm_provider(cls, value: str) -> str:
        """Validate that the configured default LLM provider is supported.

        Raises:
            ValueError: If the provider is not one of the supported options.
        """
        supported_providers = ["openai", "anthropic", "google"]
        if value not in supported_providers:
            raise ValueError(
                f"Unsupported LLM provider: {value}. "
                f"Supported providers: {', '.join(supported_providers)}"
            )
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalize the log level name and reject unknown levels."""
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(
                f"Unsupported log level: {value}. "
                f"Supported levels: {', '.join(LOG_LEVELS)}"
            )
        return level

    def resolve_config_path(self, cli_path: Optional[str] = None) -> Path:
        """Return the configuration file path.

        Precedence: explicit ``cli_path``, then ``SHARD_CONFIG``, then the OS
        default location from :func:`default_config_dir`.
        """
        if cli_path:
            return Path(cli_path)
        if self.config:
            return Path(self.config)
        return default_config_dir() / "config.toml"

    def get_api_key_for_provider(self, provider: str) -> Optional[str]:
        """Return the API key for the specified provider.

        Provider aliases are supported: "claude" maps to Anthropic, and
        "gemini" maps to Google.
        """
        provider_key_mapping = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "claude": self.anthropic_api_key,
            "google": self.google_api_key,
            "gemini": self.google_api_key,
        }
        return provider_key_mapping.get(provider)

    model_config = {
        "env_file": ".env",
        "env_prefix": "SHARD_",
        "case_sensitive": False,
        "validate_assignment": True,
        "extra": "ignore",
    }
