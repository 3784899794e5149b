"""Discord bot wiring the verification engine to gateway events.

Slash commands are registered on the bot's command tree. Buttons and the IGN
form are routed from ``on_interaction`` by parsing their custom ids, so they
keep working after a restart without re-registering views.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

import discord
from discord import app_commands
from discord.ext import commands

from allyverify.adapters.discord.audit import DiscordAuditNotifier
from allyverify.adapters.discord.gateway import DiscordCommunityGateway, snapshot_member
from allyverify.adapters.discord.views import (
    IGN_FIELD_ID,
    collection_modal,
    decided_embed,
    submitted_value,
)
from allyverify.domain.administration import (
    add_alliance,
    edit_alliance,
    list_alliances,
    parse_role_id_list,
    set_alliance_approvers,
)
from allyverify.domain.errors import Forbidden, InvalidInput, VerificationError
from allyverify.domain.interactions import (
    Decision,
    OpenCollectionForm,
    SubmitIgn,
    is_verification_token,
    parse_token,
)
from allyverify.domain.lifecycle import VerificationEngine
from allyverify.domain.model import RequestStatus

if TYPE_CHECKING:
    from allyverify.domain.administration import UnitOfWorkFactory
    from allyverify.domain.interactions import InteractionToken
    from allyverify.domain.lifecycle import DecisionResult
    from allyverify.domain.model import AllianceMapping
    from allyverify.domain.policy import VerificationPolicy

log = getLogger(__name__)

GENERIC_FAILURE: Final[str] = "Something went wrong handling that action."
NO_PERMISSION: Final[str] = "You don't have permission to use this command."

_ROUTED_TYPES: Final = frozenset(
    {discord.InteractionType.component, discord.InteractionType.modal_submit}
)


async def safe_reply(
    interaction: discord.Interaction, content: str, *, ephemeral: bool = True
) -> None:
    """Answer an interaction whether or not it was already acknowledged."""

    try:
        if interaction.response.is_done():
            await interaction.followup.send(content, ephemeral=ephemeral)
        else:
            await interaction.response.send_message(content, ephemeral=ephemeral)
    except discord.HTTPException as exc:
        log.warning("Could not answer interaction %s: %s", interaction.id, exc)


def format_mapping(mapping: AllianceMapping) -> str:
    approvers = (
        ", ".join(f"<@&{role_id}>" for role_id in mapping.approver_role_ids)
        if mapping.approver_role_ids
        else "alliance role"
    )
    state = "enabled" if mapping.enabled else "disabled"
    return (
        f"<@&{mapping.role_id}> → **{mapping.prefix}** in <#{mapping.approval_channel_id}> "
        f"(approvers: {approvers}; {state})"
    )


def describe_decision(result: DecisionResult) -> str:
    if result.stale or not result.transitioned:
        return f"This request was already {result.status.value.lower()}."
    if result.auto_rejected:
        return "That member is no longer in the server; the request was rejected."
    if result.status is RequestStatus.REJECTED:
        return "Rejected."
    if result.nickname_applied:
        return f"Approved. Nickname set to `{result.nickname}`."
    return (
        f"Approved, but I couldn't set their nickname to `{result.nickname}`. "
        "Check my role position and the Manage Nicknames permission."
    )


class AllianceVerificationBot(commands.Bot):
    """Alliance IGN verification bot."""

    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        policy: VerificationPolicy,
        guild_id: int | None = None,
    ) -> None:
        intents = discord.Intents.default()
        intents.members = True  # role changes arrive through on_member_update

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            description="Collects and approves alliance in-game names.",
        )
        self.guild_id = guild_id
        self._unit_of_work_factory = unit_of_work_factory
        self.gateway = DiscordCommunityGateway(self)
        self.notifier = DiscordAuditNotifier(self, policy.log_channel_name)
        self.engine = VerificationEngine(
            unit_of_work_factory=unit_of_work_factory,
            gateway=self.gateway,
            notifier=self.notifier,
            policy=policy,
        )
        self.tree.error(self._on_app_command_error)
        self._setup_commands()

    def _setup_commands(self) -> None:
        """Register slash commands on the bot's command tree."""

        @self.tree.command(name="alliance-add", description="Map a role to an alliance prefix")
        @app_commands.describe(
            role="Alliance role that triggers verification",
            prefix="Alliance tag used in nicknames",
            channel="Channel where requests are posted for approval",
        )
        @app_commands.default_permissions(administrator=True)
        @app_commands.guild_only()
        async def alliance_add_command(
            interaction: discord.Interaction,
            role: discord.Role,
            prefix: str,
            channel: discord.TextChannel,
        ) -> None:
            await self._handle_alliance_add(interaction, role, prefix, channel)

        @self.tree.command(name="alliance-edit", description="Change an alliance mapping")
        @app_commands.describe(
            role="Alliance role to edit",
            prefix="New alliance tag",
            channel="New approval channel",
            enabled="Whether new verifications start for this role",
        )
        @app_commands.default_permissions(administrator=True)
        @app_commands.guild_only()
        async def alliance_edit_command(
            interaction: discord.Interaction,
            role: discord.Role,
            prefix: str | None = None,
            channel: discord.TextChannel | None = None,
            enabled: bool | None = None,
        ) -> None:
            await self._handle_alliance_edit(interaction, role, prefix, channel, enabled)

        @self.tree.command(
            name="alliance-approvers",
            description="Set which roles may approve requests for an alliance",
        )
        @app_commands.describe(
            role="Alliance role to configure",
            approver_role_ids="Comma-separated role ids, empty lets the alliance role approve",
        )
        @app_commands.default_permissions(administrator=True)
        @app_commands.guild_only()
        async def alliance_approvers_command(
            interaction: discord.Interaction,
            role: discord.Role,
            approver_role_ids: str = "",
        ) -> None:
            await self._handle_alliance_approvers(interaction, role, approver_role_ids)

        @self.tree.command(name="alliance-list", description="List alliance mappings")
        @app_commands.default_permissions(administrator=True)
        @app_commands.guild_only()
        async def alliance_list_command(interaction: discord.Interaction) -> None:
            await self._handle_alliance_list(interaction)

        @self.tree.command(name="verify", description="Open the IGN form for a member")
        @app_commands.describe(user="Member to verify")
        @app_commands.default_permissions(manage_nicknames=True)
        @app_commands.guild_only()
        async def verify_command(interaction: discord.Interaction, user: discord.Member) -> None:
            await self._handle_verify(interaction, user)

    async def setup_hook(self) -> None:
        """Sync slash commands before connecting."""
        if self.guild_id:
            guild = discord.Object(id=self.guild_id)
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            log.info("Slash commands synced to guild %s", self.guild_id)
        else:
            await self.tree.sync()
            log.info("Slash commands synced globally")

    async def on_ready(self) -> None:
        user = self.user
        log.info("Logged in as %s", user.name if user else "unknown")

    # Gateway events -----------------------------------------------------------

    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        if after.bot:
            return
        before_role_ids = [role.id for role in before.roles]
        try:
            await self.engine.handle_member_update(before_role_ids, snapshot_member(after))
        except Exception:
            log.exception("Member update for %s in %s failed", after.id, after.guild.id)

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        if interaction.type not in _ROUTED_TYPES or interaction.data is None:
            return
        custom_id = interaction.data.get("custom_id")
        if not isinstance(custom_id, str) or not is_verification_token(custom_id):
            return

        try:
            await self._dispatch(interaction, parse_token(custom_id))
        except VerificationError as exc:
            await safe_reply(interaction, str(exc))
        except Exception:
            log.exception("Interaction %r failed", custom_id)
            await safe_reply(interaction, GENERIC_FAILURE)

    async def _dispatch(self, interaction: discord.Interaction, token: InteractionToken) -> None:
        is_component = interaction.type is discord.InteractionType.component
        match token:
            case OpenCollectionForm() if is_component:
                form = self.engine.open_collection_form(token, interaction.user.id)
                await interaction.response.send_modal(collection_modal(form))
            case SubmitIgn() if not is_component:
                await self._handle_submission(interaction, token)
            case Decision() if is_component:
                await self._handle_decision(interaction, token)
            case _:
                raise InvalidInput("That action doesn't apply here.")

    async def _handle_submission(self, interaction: discord.Interaction, token: SubmitIgn) -> None:
        raw_ign = submitted_value(interaction.data, IGN_FIELD_ID) or ""
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.engine.submit_ign(token, raw_ign)
        await interaction.followup.send(
            f"✅ Submitted for approval. Once approved your nickname will be "
            f"`{result.nickname_preview}`.",
            ephemeral=True,
        )

    async def _handle_decision(self, interaction: discord.Interaction, token: Decision) -> None:
        if interaction.guild_id != token.community_id:
            raise InvalidInput("This button belongs to a different server.")
        await interaction.response.defer()
        result = await self.engine.decide(token, interaction.user.id)

        if result.transitioned and interaction.message is not None:
            original = interaction.message.embeds[0] if interaction.message.embeds else None
            try:
                await interaction.edit_original_response(
                    embed=decided_embed(original, result.status, str(interaction.user)),
                    view=None,
                )
            except discord.HTTPException as exc:
                log.warning(
                    "Could not update approval message %s: %s", interaction.message.id, exc
                )
        await interaction.followup.send(describe_decision(result), ephemeral=True)

    # Slash commands -----------------------------------------------------------

    async def _handle_alliance_add(
        self,
        interaction: discord.Interaction,
        role: discord.Role,
        prefix: str,
        channel: discord.TextChannel,
    ) -> None:
        guild = self._require_admin(interaction)
        mapping = add_alliance(
            unit_of_work_factory=self._unit_of_work_factory,
            community_id=guild.id,
            role_id=role.id,
            prefix=prefix,
            approval_channel_id=channel.id,
        )
        await interaction.response.send_message(
            f"Saved: {format_mapping(mapping)}", ephemeral=True
        )

    async def _handle_alliance_edit(
        self,
        interaction: discord.Interaction,
        role: discord.Role,
        prefix: str | None,
        channel: discord.TextChannel | None,
        enabled: bool | None,
    ) -> None:
        guild = self._require_admin(interaction)
        mapping = edit_alliance(
            unit_of_work_factory=self._unit_of_work_factory,
            community_id=guild.id,
            role_id=role.id,
            prefix=prefix,
            approval_channel_id=channel.id if channel is not None else None,
            enabled=enabled,
        )
        await interaction.response.send_message(
            f"Updated: {format_mapping(mapping)}", ephemeral=True
        )

    async def _handle_alliance_approvers(
        self,
        interaction: discord.Interaction,
        role: discord.Role,
        approver_role_ids: str,
    ) -> None:
        guild = self._require_admin(interaction)
        mapping = set_alliance_approvers(
            unit_of_work_factory=self._unit_of_work_factory,
            community_id=guild.id,
            role_id=role.id,
            approver_role_ids=parse_role_id_list(approver_role_ids),
        )
        await interaction.response.send_message(
            f"Updated: {format_mapping(mapping)}", ephemeral=True
        )

    async def _handle_alliance_list(self, interaction: discord.Interaction) -> None:
        guild = self._require_admin(interaction)
        mappings = list_alliances(
            unit_of_work_factory=self._unit_of_work_factory, community_id=guild.id
        )
        if not mappings:
            await interaction.response.send_message(
                "No alliances configured yet.", ephemeral=True
            )
            return
        lines = "\n".join(format_mapping(mapping) for mapping in mappings)
        await interaction.response.send_message(
            lines, ephemeral=True, allowed_mentions=discord.AllowedMentions.none()
        )

    async def _handle_verify(self, interaction: discord.Interaction, user: discord.Member) -> None:
        guild = self._require_guild(interaction)
        permissions = interaction.permissions
        if not (permissions.manage_nicknames or permissions.administrator):
            raise Forbidden(NO_PERMISSION)
        form = await self.engine.start_manual_verification(guild.id, user.id)
        await interaction.response.send_modal(collection_modal(form))

    def _require_guild(self, interaction: discord.Interaction) -> discord.Guild:
        if interaction.guild is None:
            raise InvalidInput("This command only works in a server.")
        return interaction.guild

    def _require_admin(self, interaction: discord.Interaction) -> discord.Guild:
        guild = self._require_guild(interaction)
        if not interaction.permissions.administrator:
            raise Forbidden(NO_PERMISSION)
        return guild

    async def _on_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        original = error.original if isinstance(error, app_commands.CommandInvokeError) else error
        if isinstance(original, VerificationError):
            await safe_reply(interaction, str(original))
        elif isinstance(original, app_commands.CheckFailure):
            await safe_reply(interaction, NO_PERMISSION)
        else:
            command_name = interaction.command.name if interaction.command else "?"
            log.error("Command /%s failed", command_name, exc_info=original)
            await safe_reply(interaction, GENERIC_FAILURE)
