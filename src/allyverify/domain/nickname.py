"""Canonical nickname rendering and application."""

from __future__ import annotations

import re
from logging import getLogger
from typing import TYPE_CHECKING, Final

from allyverify.domain.errors import ExternalFailure
from allyverify.domain.policy import MAX_NICKNAME_LENGTH

if TYPE_CHECKING:
    from allyverify.domain.model import MemberSnapshot
    from allyverify.domain.policy import VerificationPolicy
    from allyverify.domain.ports.platform import CommunityGateway

log = getLogger(__name__)

ALLIANCE_PLACEHOLDER: Final[str] = "{ALLIANCE}"
IGN_PLACEHOLDER: Final[str] = "{IGN}"

_PLACEHOLDER_PATTERN = re.compile(r"\{(ALLIANCE|IGN)\}")


def truncate_nickname(name: str, max_length: int = MAX_NICKNAME_LENGTH) -> str:
    return name[:max_length]


def render_nickname(
    template: str,
    prefix: str,
    ign: str,
    *,
    max_length: int = MAX_NICKNAME_LENGTH,
) -> str:
    """Substitute ``{ALLIANCE}`` and ``{IGN}`` into ``template``.

    Substitution is single-pass, so a prefix or IGN containing a placeholder
    is inserted literally. The result is cut to ``max_length`` characters.
    """

    values = {"ALLIANCE": prefix, "IGN": ign}
    rendered = _PLACEHOLDER_PATTERN.sub(lambda match: values[match.group(1)], template)
    return truncate_nickname(rendered, max_length)


class NicknameSynchronizer:
    """Renders the canonical name for a policy and pushes it to the platform."""

    def __init__(self, policy: VerificationPolicy, gateway: CommunityGateway) -> None:
        self._template = policy.nick_template
        self._max_length = policy.max_nickname_length
        self._gateway = gateway

    def render(self, prefix: str, ign: str) -> str:
        return render_nickname(self._template, prefix, ign, max_length=self._max_length)

    def is_in_sync(self, member: MemberSnapshot, prefix: str, ign: str) -> bool:
        return member.display_name == self.render(prefix, ign)

    async def apply(self, member: MemberSnapshot, name: str) -> bool:
        """Set ``member``'s nickname; platform refusals come back as ``False``."""

        nickname = truncate_nickname(name, self._max_length)
        try:
            await self._gateway.set_nickname(member, nickname)
        except ExternalFailure as exc:
            log.warning(
                "Could not set nickname for member %s in %s: %s",
                member.member_id,
                member.community_id,
                exc,
            )
            return False
        return True
