"""Ports for persisting verification state.

Each port owns one relation and exposes only the operations the core needs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Sequence
    from datetime import datetime

    from allyverify.domain.model import (
        AllianceMapping,
        DecisionOutcome,
        VerificationRequest,
    )


@runtime_checkable
class AllianceRegistry(Protocol):
    """Durable mapping from (community, role) to alliance configuration."""

    def upsert(
        self,
        community_id: int,
        role_id: int,
        prefix: str,
        approval_channel_id: int,
    ) -> AllianceMapping:
        """Create or overwrite a mapping; the result is always enabled."""
        ...

    def update(
        self,
        community_id: int,
        role_id: int,
        *,
        prefix: str | None = None,
        approval_channel_id: int | None = None,
        enabled: bool | None = None,
    ) -> AllianceMapping:
        """Partially update a mapping. Raises ``NotFound`` when absent."""
        ...

    def set_approvers(
        self,
        community_id: int,
        role_id: int,
        role_ids: Iterable[int],
    ) -> AllianceMapping:
        """Replace the approver role list. Raises ``NotFound`` when absent."""
        ...

    def get(self, community_id: int, role_id: int) -> AllianceMapping | None: ...

    def list_all(self, community_id: int) -> Sequence[AllianceMapping]: ...

    def list_enabled(self, community_id: int) -> Sequence[AllianceMapping]:
        """Enabled mappings in no guaranteed order."""
        ...

    def find_for_member(
        self,
        community_id: int,
        member_role_ids: Collection[int],
    ) -> AllianceMapping | None:
        """First enabled mapping whose role the member holds."""
        ...


@runtime_checkable
class MembershipStore(Protocol):
    """Cache of the last IGN accepted for each member."""

    def set_ign(self, community_id: int, member_id: int, ign: str, *, at: datetime) -> None: ...

    def get_ign(self, community_id: int, member_id: int) -> str | None: ...


@runtime_checkable
class RequestLedger(Protocol):
    """Append-mostly record of verification requests."""

    def create(
        self,
        community_id: int,
        request_id: str,
        member_id: int,
        role_id: int,
        ign: str,
        *,
        at: datetime,
    ) -> VerificationRequest:
        """Insert a PENDING request. Raises ``Conflict`` if the id is taken."""
        ...

    def get(self, community_id: int, request_id: str) -> VerificationRequest | None: ...

    def decide(
        self,
        community_id: int,
        request_id: str,
        outcome: DecisionOutcome,
        decider_id: int | None,
        *,
        at: datetime,
    ) -> bool:
        """Atomically move a PENDING request to its terminal status.

        Returns ``True`` only for the caller whose update performed the
        transition; every later caller gets ``False``.
        """
        ...
