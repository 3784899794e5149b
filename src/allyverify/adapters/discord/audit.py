"""Audit lines posted to a named log channel."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, cast

import discord

log = getLogger(__name__)


class DiscordAuditNotifier:
    """Posts to the text channel called ``channel_name``; ``None`` disables auditing."""

    def __init__(self, client: discord.Client, channel_name: str | None) -> None:
        self._client = client
        self._channel_name = channel_name

    async def audit(self, community_id: int, message: str) -> bool:
        if self._channel_name is None:
            return False
        guild = self._client.get_guild(community_id)
        if guild is None:
            return False
        channel = discord.utils.get(guild.text_channels, name=self._channel_name)
        if channel is None:
            log.debug("No #%s channel in %s", self._channel_name, community_id)
            return False
        try:
            await channel.send(message, allowed_mentions=discord.AllowedMentions.none())
        except discord.HTTPException as exc:
            log.warning("Audit post to #%s failed: %s", self._channel_name, exc)
            return False
        return True


if TYPE_CHECKING:
    from allyverify.domain.ports.platform import AuditNotifier

    _notifier_check: AuditNotifier = DiscordAuditNotifier(cast("discord.Client", object()), None)
