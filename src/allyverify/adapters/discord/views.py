"""Embeds, buttons and forms shown to members and approvers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final, cast

import discord

from allyverify.domain.interactions import (
    Decision,
    OpenCollectionForm,
    encode_token,
)
from allyverify.domain.model import DecisionOutcome, RequestStatus

if TYPE_CHECKING:
    from collections.abc import Mapping

    from allyverify.domain.lifecycle import CollectionForm
    from allyverify.domain.model import AllianceMapping, CollectionPrompt, VerificationRequest

IGN_FIELD_ID: Final[str] = "ign"

PROMPT_COLOUR: Final = discord.Colour.blurple()
PENDING_COLOUR: Final = discord.Colour.gold()
APPROVED_COLOUR: Final = discord.Colour.green()
REJECTED_COLOUR: Final = discord.Colour.red()


def _static_view(*buttons: discord.ui.Button[discord.ui.View]) -> discord.ui.View:
    # Presses are routed by custom_id in the bot's on_interaction, so the view
    # is finished up front and never registered for dispatch.
    view = discord.ui.View(timeout=None)
    for button in buttons:
        view.add_item(button)
    view.stop()
    return view


def collection_prompt_embed(prompt: CollectionPrompt) -> discord.Embed:
    embed = discord.Embed(
        title="Alliance verification",
        description=(
            f"You've been given the role <@&{prompt.role_id}> (**{prompt.prefix}**).\n"
            "Press **Submit IGN** and enter your in-game name so an officer can approve it."
        ),
        colour=PROMPT_COLOUR,
    )
    embed.add_field(name="Nickname format", value=f"`{prompt.nickname_example}`", inline=False)
    return embed


def collection_prompt_view(prompt: CollectionPrompt) -> discord.ui.View:
    token = OpenCollectionForm(
        community_id=prompt.community_id,
        member_id=prompt.member_id,
        role_id=prompt.role_id,
    )
    return _static_view(
        discord.ui.Button(
            label="Submit IGN",
            style=discord.ButtonStyle.primary,
            custom_id=encode_token(token),
        )
    )


def collection_modal(form: CollectionForm) -> discord.ui.Modal:
    modal = discord.ui.Modal(title="Verify your IGN", custom_id=encode_token(form.token))
    modal.add_item(
        discord.ui.TextInput(
            label="In-game name",
            custom_id=IGN_FIELD_ID,
            style=discord.TextStyle.short,
            min_length=form.min_length,
            max_length=form.max_length,
            required=True,
        )
    )
    return modal


def approval_embed(
    mapping: AllianceMapping,
    request: VerificationRequest,
    nickname_preview: str,
) -> discord.Embed:
    embed = discord.Embed(
        title="IGN verification request",
        colour=PENDING_COLOUR,
        timestamp=request.created_at,
    )
    embed.add_field(name="Member", value=f"<@{request.member_id}>", inline=True)
    embed.add_field(name="Alliance", value=f"<@&{mapping.role_id}> ({mapping.prefix})", inline=True)
    embed.add_field(name="Requested IGN", value=f"`{request.ign}`", inline=False)
    embed.add_field(name="Nickname will be", value=f"`{nickname_preview}`", inline=False)
    embed.set_footer(text=f"Request {request.request_id}")
    return embed


def approval_view(request: VerificationRequest) -> discord.ui.View:
    def button(
        outcome: DecisionOutcome, label: str, style: discord.ButtonStyle
    ) -> discord.ui.Button[discord.ui.View]:
        token = Decision(
            community_id=request.community_id,
            request_id=request.request_id,
            outcome=outcome,
        )
        return discord.ui.Button(label=label, style=style, custom_id=encode_token(token))

    return _static_view(
        button(DecisionOutcome.APPROVE, "Approve", discord.ButtonStyle.success),
        button(DecisionOutcome.REJECT, "Reject", discord.ButtonStyle.danger),
    )


def decided_embed(
    original: discord.Embed | None,
    status: RequestStatus,
    decided_by: str,
) -> discord.Embed:
    """Copy of the approval embed marked with its final status."""

    if original is None:
        embed = discord.Embed(title="IGN verification request")
    else:
        embed = original.copy()
    if status is RequestStatus.APPROVED:
        embed.colour = APPROVED_COLOUR
        embed.set_footer(text=f"Approved by {decided_by}")
    else:
        embed.colour = REJECTED_COLOUR
        embed.set_footer(text=f"Rejected by {decided_by}")
    return embed


def submitted_value(data: Mapping[str, Any] | None, custom_id: str) -> str | None:
    """Find a text input's value in a modal submission payload.

    Inputs arrive nested in action rows (``components``) or labels
    (``component``), depending on how the form was laid out.
    """

    if not data:
        return None
    if data.get("custom_id") == custom_id and "value" in data:
        return str(data["value"])
    rows = cast("list[Mapping[str, Any]]", data.get("components") or [])
    children = list(rows)
    child = data.get("component")
    if isinstance(child, dict):
        children.append(cast("Mapping[str, Any]", child))
    for item in children:
        value = submitted_value(item, custom_id)
        if value is not None:
            return value
    return None
