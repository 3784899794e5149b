"""Typed interaction tokens carried in component and form identifiers.

Tokens are colon-separated: an action tag followed by its fields, e.g.
``ign-open:<community>:<member>:<role>`` or
``ign-decide:approve:<community>:<request-id>``. They are parsed once at the
platform boundary; the core only ever sees the dataclasses below.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from allyverify.domain.errors import InvalidInput
from allyverify.domain.model import DecisionOutcome

SEPARATOR: Final[str] = ":"
# Discord caps custom_id at 100 characters
MAX_TOKEN_LENGTH: Final[int] = 100


class TokenTag(StrEnum):
    OPEN_FORM = "ign-open"
    SUBMIT_IGN = "ign-form"
    DECISION = "ign-decide"


@dataclass(frozen=True, slots=True)
class OpenCollectionForm:
    """Button asking ``member_id`` to open the IGN form for ``role_id``."""

    community_id: int
    member_id: int
    role_id: int


@dataclass(frozen=True, slots=True)
class SubmitIgn:
    """IGN form submission on behalf of ``member_id`` for ``role_id``."""

    community_id: int
    member_id: int
    role_id: int


@dataclass(frozen=True, slots=True)
class Decision:
    community_id: int
    request_id: str
    outcome: DecisionOutcome


type InteractionToken = OpenCollectionForm | SubmitIgn | Decision

_TAGS: Final[frozenset[str]] = frozenset(tag.value for tag in TokenTag)


def encode_token(token: InteractionToken) -> str:
    match token:
        case OpenCollectionForm(community_id=community, member_id=member, role_id=role):
            parts = [TokenTag.OPEN_FORM, str(community), str(member), str(role)]
        case SubmitIgn(community_id=community, member_id=member, role_id=role):
            parts = [TokenTag.SUBMIT_IGN, str(community), str(member), str(role)]
        case Decision(community_id=community, request_id=request_id, outcome=outcome):
            if not request_id or SEPARATOR in request_id:
                raise InvalidInput(f"Invalid request id: {request_id!r}")
            parts = [TokenTag.DECISION, str(outcome), str(community), request_id]
    encoded = SEPARATOR.join(parts)
    if len(encoded) > MAX_TOKEN_LENGTH:
        raise InvalidInput("Interaction token too long")
    return encoded


def is_verification_token(raw: str) -> bool:
    """Whether ``raw`` claims to be one of our tokens (it may still be malformed)."""

    tag, _, _ = raw.partition(SEPARATOR)
    return tag in _TAGS


def parse_token(raw: str) -> InteractionToken:
    """Parse a component/form identifier. Raises ``InvalidInput`` when malformed."""

    parts = raw.split(SEPARATOR)
    try:
        tag = TokenTag(parts[0])
    except ValueError:
        raise InvalidInput(f"Unknown interaction: {raw!r}") from None

    if tag is TokenTag.DECISION:
        if len(parts) != 4 or not parts[3]:
            raise InvalidInput(f"Malformed decision token: {raw!r}")
        try:
            outcome = DecisionOutcome(parts[1])
        except ValueError:
            raise InvalidInput(f"Unknown decision outcome: {parts[1]!r}") from None
        return Decision(
            community_id=_parse_id(parts[2], raw),
            request_id=parts[3],
            outcome=outcome,
        )

    if len(parts) != 4:
        raise InvalidInput(f"Malformed interaction token: {raw!r}")
    community_id, member_id, role_id = (_parse_id(part, raw) for part in parts[1:])
    if tag is TokenTag.OPEN_FORM:
        return OpenCollectionForm(community_id=community_id, member_id=member_id, role_id=role_id)
    return SubmitIgn(community_id=community_id, member_id=member_id, role_id=role_id)


def _parse_id(value: str, raw: str) -> int:
    if not (value.isascii() and value.isdigit()):
        raise InvalidInput(f"Malformed identifier in interaction token: {raw!r}")
    return int(value)
