"""Application configuration helpers."""

from __future__ import annotations

from .discord import DiscordConfig, get_discord_config
from .env import optional_env_var, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging
from .policy import PolicyFile, load_policy, parse_policy
from .storage import (
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_database_uri,
    get_storage_config,
)

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "DiscordConfig",
    "MissingConfigurationError",
    "PolicyFile",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_database_uri",
    "get_discord_config",
    "get_storage_config",
    "load_policy",
    "optional_env_var",
    "parse_policy",
    "require_env_var",
    "require_env_vars",
]
