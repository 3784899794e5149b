from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import discord

from allyverify.adapters.discord.views import (
    IGN_FIELD_ID,
    approval_embed,
    approval_view,
    collection_modal,
    collection_prompt_embed,
    collection_prompt_view,
    decided_embed,
    submitted_value,
)
from allyverify.domain.interactions import (
    Decision,
    OpenCollectionForm,
    SubmitIgn,
    parse_token,
)
from allyverify.domain.lifecycle import CollectionForm
from allyverify.domain.model import (
    AllianceMapping,
    CollectionPrompt,
    DecisionOutcome,
    RequestStatus,
    VerificationRequest,
)

MAPPING = AllianceMapping(community_id=1, role_id=2, prefix="ABC", approval_channel_id=3)
REQUEST = VerificationRequest(
    community_id=1,
    request_id="1718000000000_42",
    member_id=42,
    role_id=2,
    ign="Hero",
    created_at=datetime(2026, 1, 1, tzinfo=UTC),
)
PROMPT = CollectionPrompt(
    community_id=1, member_id=42, role_id=2, prefix="ABC", nickname_example="ABC | YOUR_IGN"
)


def _custom_ids(view: discord.ui.View) -> list[str]:
    return [
        item.custom_id
        for item in view.children
        if isinstance(item, discord.ui.Button) and item.custom_id is not None
    ]


def test_prompt_button_carries_open_form_token() -> None:
    async def build() -> list[str]:
        return _custom_ids(collection_prompt_view(PROMPT))

    (custom_id,) = asyncio.run(build())

    assert parse_token(custom_id) == OpenCollectionForm(community_id=1, member_id=42, role_id=2)


def test_prompt_embed_shows_nickname_format() -> None:
    embed = collection_prompt_embed(PROMPT)

    assert any("ABC | YOUR_IGN" in field.value for field in embed.fields if field.value)


def test_approval_buttons_carry_decision_tokens() -> None:
    async def build() -> list[str]:
        return _custom_ids(approval_view(REQUEST))

    tokens = [parse_token(custom_id) for custom_id in asyncio.run(build())]

    assert tokens == [
        Decision(community_id=1, request_id=REQUEST.request_id, outcome=DecisionOutcome.APPROVE),
        Decision(community_id=1, request_id=REQUEST.request_id, outcome=DecisionOutcome.REJECT),
    ]


def test_approval_embed_lists_request_details() -> None:
    embed = approval_embed(MAPPING, REQUEST, "ABC | Hero")
    values = [field.value for field in embed.fields]

    assert "<@42>" in values
    assert "`Hero`" in values
    assert "`ABC | Hero`" in values
    assert embed.footer.text == f"Request {REQUEST.request_id}"


def test_collection_modal_uses_policy_bounds() -> None:
    form = CollectionForm(
        token=SubmitIgn(community_id=1, member_id=42, role_id=2), min_length=3, max_length=12
    )

    async def build() -> discord.ui.Modal:
        return collection_modal(form)

    modal = asyncio.run(build())
    (field,) = [item for item in modal.children if isinstance(item, discord.ui.TextInput)]

    assert parse_token(modal.custom_id) == form.token
    assert field.custom_id == IGN_FIELD_ID
    assert (field.min_length, field.max_length) == (3, 12)


def test_decided_embed_marks_outcome() -> None:
    original = approval_embed(MAPPING, REQUEST, "ABC | Hero")

    approved = decided_embed(original, RequestStatus.APPROVED, "officer")
    rejected = decided_embed(None, RequestStatus.REJECTED, "officer")

    assert approved.footer.text == "Approved by officer"
    assert len(approved.fields) == len(original.fields)
    assert original.footer.text == f"Request {REQUEST.request_id}"
    assert rejected.footer.text == "Rejected by officer"


def test_submitted_value_finds_nested_inputs() -> None:
    action_rows = {
        "custom_id": "ign-form:1:42:2",
        "components": [
            {"type": 1, "components": [{"type": 4, "custom_id": "ign", "value": "Hero"}]}
        ],
    }
    labels = {
        "custom_id": "ign-form:1:42:2",
        "components": [
            {"type": 18, "component": {"type": 4, "custom_id": "ign", "value": "Label"}}
        ],
    }

    assert submitted_value(action_rows, IGN_FIELD_ID) == "Hero"
    assert submitted_value(labels, IGN_FIELD_ID) == "Label"
    assert submitted_value({"components": []}, IGN_FIELD_ID) is None
    assert submitted_value(None, IGN_FIELD_ID) is None
