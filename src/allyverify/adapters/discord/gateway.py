"""discord.py implementation of the community gateway port."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, cast

import discord

from allyverify.adapters.discord.views import (
    approval_embed,
    approval_view,
    collection_prompt_embed,
    collection_prompt_view,
)
from allyverify.domain.errors import ExternalFailure
from allyverify.domain.model import MemberSnapshot

if TYPE_CHECKING:
    from allyverify.domain.model import AllianceMapping, CollectionPrompt, VerificationRequest

log = getLogger(__name__)

NICKNAME_REASON = "Alliance IGN verification"


def snapshot_member(member: discord.Member) -> MemberSnapshot:
    """Freeze the parts of a guild member the core looks at."""

    roles = [role for role in member.roles if not role.is_default()]
    return MemberSnapshot(
        community_id=member.guild.id,
        member_id=member.id,
        display_name=member.nick or member.name,
        role_ids=tuple(role.id for role in roles),
        role_names=frozenset(role.name for role in roles),
        is_administrator=member.guild_permissions.administrator,
    )


class DiscordCommunityGateway:
    def __init__(self, client: discord.Client) -> None:
        self._client = client

    async def fetch_member(self, community_id: int, member_id: int) -> MemberSnapshot | None:
        member = await self._resolve_member(community_id, member_id)
        return snapshot_member(member) if member is not None else None

    async def send_collection_prompt(
        self, member: MemberSnapshot, prompt: CollectionPrompt
    ) -> bool:
        target = await self._message_target(member)
        if target is None:
            return False
        try:
            await target.send(
                embed=collection_prompt_embed(prompt),
                view=collection_prompt_view(prompt),
            )
        except discord.HTTPException as exc:
            log.info("Collection prompt to %s not delivered: %s", member.member_id, exc)
            return False
        return True

    async def approval_channel_available(self, community_id: int, channel_id: int) -> bool:
        return self._text_channel(community_id, channel_id) is not None

    async def post_approval_request(
        self,
        mapping: AllianceMapping,
        request: VerificationRequest,
        nickname_preview: str,
    ) -> bool:
        channel = self._text_channel(mapping.community_id, mapping.approval_channel_id)
        if channel is None:
            return False
        try:
            await channel.send(
                embed=approval_embed(mapping, request, nickname_preview),
                view=approval_view(request),
            )
        except discord.HTTPException as exc:
            log.warning(
                "Could not post request %s to channel %s: %s",
                request.request_id,
                mapping.approval_channel_id,
                exc,
            )
            return False
        return True

    async def set_nickname(self, member: MemberSnapshot, nickname: str) -> None:
        target = await self._require_member(member)
        try:
            await target.edit(nick=nickname, reason=NICKNAME_REASON)
        except discord.HTTPException as exc:
            raise ExternalFailure(f"Nickname change refused: {exc}") from exc

    async def grant_role(self, member: MemberSnapshot, role_name: str) -> bool:
        target = await self._require_member(member)
        role = discord.utils.get(target.guild.roles, name=role_name)
        if role is None:
            return False
        if role in target.roles:
            return True
        try:
            await target.add_roles(role, reason=NICKNAME_REASON)
        except discord.HTTPException as exc:
            raise ExternalFailure(f"Role grant refused: {exc}") from exc
        return True

    async def send_direct_message(self, member: MemberSnapshot, content: str) -> bool:
        target = await self._message_target(member)
        if target is None:
            return False
        try:
            await target.send(content)
        except discord.HTTPException as exc:
            log.info("Direct message to %s not delivered: %s", member.member_id, exc)
            return False
        return True

    async def _resolve_member(self, community_id: int, member_id: int) -> discord.Member | None:
        guild = self._client.get_guild(community_id)
        if guild is None:
            return None
        member = guild.get_member(member_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(member_id)
        except discord.NotFound:
            return None
        except discord.HTTPException as exc:
            raise ExternalFailure(f"Could not look up member {member_id}: {exc}") from exc

    async def _message_target(self, member: MemberSnapshot) -> discord.Member | None:
        # messaging is best-effort, a failed lookup means "not delivered"
        try:
            return await self._resolve_member(member.community_id, member.member_id)
        except ExternalFailure as exc:
            log.info("Member %s unreachable for a message: %s", member.member_id, exc)
            return None

    async def _require_member(self, member: MemberSnapshot) -> discord.Member:
        target = await self._resolve_member(member.community_id, member.member_id)
        if target is None:
            raise ExternalFailure(f"Member {member.member_id} is no longer in the server.")
        return target

    def _text_channel(
        self, community_id: int, channel_id: int
    ) -> discord.abc.Messageable | None:
        guild = self._client.get_guild(community_id)
        if guild is None:
            return None
        channel = guild.get_channel_or_thread(channel_id)
        if isinstance(channel, discord.abc.Messageable):
            return channel
        return None


if TYPE_CHECKING:
    from allyverify.domain.ports.platform import CommunityGateway

    _gateway_check: CommunityGateway = DiscordCommunityGateway(cast("discord.Client", object()))
