from __future__ import annotations

import pytest

from allyverify.domain.errors import InvalidInput
from allyverify.domain.interactions import (
    Decision,
    OpenCollectionForm,
    SubmitIgn,
    encode_token,
    is_verification_token,
    parse_token,
)
from allyverify.domain.model import DecisionOutcome


@pytest.mark.parametrize(
    ("token", "raw"),
    [
        (
            OpenCollectionForm(community_id=1, member_id=2, role_id=3),
            "ign-open:1:2:3",
        ),
        (SubmitIgn(community_id=1, member_id=2, role_id=3), "ign-form:1:2:3"),
        (
            Decision(community_id=1, request_id="1718000000000_2", outcome=DecisionOutcome.REJECT),
            "ign-decide:reject:1:1718000000000_2",
        ),
    ],
)
def test_token_wire_format(token: OpenCollectionForm | SubmitIgn | Decision, raw: str) -> None:
    assert encode_token(token) == raw
    assert parse_token(raw) == token


def test_snowflake_sized_ids_fit_custom_id_limit() -> None:
    snowflake = 1_234_567_890_123_456_789
    raw = encode_token(
        Decision(
            community_id=snowflake,
            request_id=f"1718000000000_{snowflake}",
            outcome=DecisionOutcome.APPROVE,
        )
    )

    assert len(raw) <= 100


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "something-else:1:2:3",
        "ign-open:1:2",
        "ign-open:1:2:3:4",
        "ign-form:a:2:3",
        "ign-form:1:-2:3",
        "ign-form:1:²:3",
        "ign-decide:maybe:1:abc",
        "ign-decide:approve:1:",
        "ign-decide:approve:x:abc",
        "ign-decide:approve:1:abc:extra",
    ],
)
def test_malformed_tokens_raise_invalid_input(raw: str) -> None:
    with pytest.raises(InvalidInput):
        parse_token(raw)


def test_is_verification_token_only_checks_the_tag() -> None:
    assert is_verification_token("ign-decide:garbage")
    assert is_verification_token("ign-open:1:2:3")
    assert not is_verification_token("other:1:2:3")
    assert not is_verification_token("")


def test_request_ids_with_separator_cannot_be_encoded() -> None:
    with pytest.raises(InvalidInput):
        encode_token(Decision(community_id=1, request_id="a:b", outcome=DecisionOutcome.APPROVE))
