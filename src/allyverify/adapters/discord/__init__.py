"""discord.py adapter for allyverify."""

from __future__ import annotations

from .audit import DiscordAuditNotifier
from .bot import AllianceVerificationBot
from .gateway import DiscordCommunityGateway, snapshot_member

__all__ = [
    "AllianceVerificationBot",
    "DiscordAuditNotifier",
    "DiscordCommunityGateway",
    "snapshot_member",
]
