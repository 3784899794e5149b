"""Alliance configuration owned by a community."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


def normalize_prefix(prefix: str) -> str:
    normalized = prefix.strip()
    if not normalized:
        raise ValueError("Alliance prefix must not be empty")
    return normalized


def normalize_role_ids(role_ids: Iterable[int]) -> tuple[int, ...]:
    """Deduplicate role ids while keeping the order they were given in."""

    seen: set[int] = set()
    ordered: list[int] = []
    for role_id in role_ids:
        if role_id in seen:
            continue
        seen.add(role_id)
        ordered.append(role_id)
    return tuple(ordered)


@dataclass(eq=False, kw_only=True)
class AllianceMapping:
    """Maps one community role to an alliance prefix and approval channel.

    An empty ``approver_role_ids`` means "unset": members holding the alliance
    role itself may approve requests for it.
    """

    community_id: int
    role_id: int
    prefix: str
    approval_channel_id: int
    approver_role_ids: tuple[int, ...] = field(default_factory=tuple[int, ...])
    enabled: bool = True

    def __post_init__(self) -> None:
        self.prefix = normalize_prefix(self.prefix)
        self.approver_role_ids = normalize_role_ids(self.approver_role_ids)

    def reconfigure(self, *, prefix: str, approval_channel_id: int) -> None:
        """Overwrite prefix and channel and re-enable the mapping."""
        self.prefix = normalize_prefix(prefix)
        self.approval_channel_id = approval_channel_id
        self.enabled = True

    def apply_changes(
        self,
        *,
        prefix: str | None = None,
        approval_channel_id: int | None = None,
        enabled: bool | None = None,
    ) -> None:
        if prefix is not None:
            self.prefix = normalize_prefix(prefix)
        if approval_channel_id is not None:
            self.approval_channel_id = approval_channel_id
        if enabled is not None:
            self.enabled = enabled

    def set_approvers(self, role_ids: Iterable[int]) -> None:
        self.approver_role_ids = normalize_role_ids(role_ids)
