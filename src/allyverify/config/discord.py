"""Discord connection settings."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .errors import ConfigurationError


@dataclass(frozen=True)
class DiscordConfig:
    """Holds the bot token and the optional guild used for command sync."""

    token: str
    guild_id: int | None = None


def get_discord_config() -> DiscordConfig:
    values = require_env_vars(("DISCORD_TOKEN",))
    raw_guild = optional_env_var("DISCORD_GUILD_ID")
    guild_id: int | None = None
    if raw_guild is not None:
        try:
            guild_id = int(raw_guild)
        except ValueError as exc:
            raise ConfigurationError(f"DISCORD_GUILD_ID must be numeric, got {raw_guild!r}") from exc
    return DiscordConfig(token=values["DISCORD_TOKEN"], guild_id=guild_id)
