"""Ports for the chat platform the core talks to."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from allyverify.domain.model import (
        AllianceMapping,
        CollectionPrompt,
        MemberSnapshot,
        VerificationRequest,
    )


@runtime_checkable
class CommunityGateway(Protocol):
    """Operations on a community that the lifecycle engine depends on.

    Messaging calls report delivery as a boolean. Mutations (nickname, role)
    raise ``ExternalFailure`` when the platform refuses them.
    """

    async def fetch_member(self, community_id: int, member_id: int) -> MemberSnapshot | None:
        """Current state of a member, or ``None`` if they are not in the community."""
        ...

    async def send_collection_prompt(self, member: MemberSnapshot, prompt: CollectionPrompt) -> bool:
        ...

    async def approval_channel_available(self, community_id: int, channel_id: int) -> bool: ...

    async def post_approval_request(
        self,
        mapping: AllianceMapping,
        request: VerificationRequest,
        nickname_preview: str,
    ) -> bool: ...

    async def set_nickname(self, member: MemberSnapshot, nickname: str) -> None: ...

    async def grant_role(self, member: MemberSnapshot, role_name: str) -> bool:
        """Add the named role. ``False`` when no such role exists."""
        ...

    async def send_direct_message(self, member: MemberSnapshot, content: str) -> bool: ...


@runtime_checkable
class AuditNotifier(Protocol):
    """Posts human-readable audit lines. Never raises."""

    async def audit(self, community_id: int, message: str) -> bool: ...
