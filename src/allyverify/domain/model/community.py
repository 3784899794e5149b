"""Read-only views of chat-platform state handed to the core."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class MemberSnapshot:
    """A member of a community as seen at one point in time.

    ``role_ids`` keeps the platform's ordering so "first matching role"
    decisions are stable for a given snapshot.
    """

    community_id: int
    member_id: int
    display_name: str
    role_ids: tuple[int, ...] = ()
    role_names: frozenset[str] = field(default_factory=frozenset[str])
    is_administrator: bool = False

    @property
    def mention(self) -> str:
        return f"<@{self.member_id}>"

    def has_role(self, role_id: int) -> bool:
        return role_id in self.role_ids

    def has_any_role(self, role_ids: tuple[int, ...] | frozenset[int]) -> bool:
        return any(role_id in self.role_ids for role_id in role_ids)


@dataclass(frozen=True, slots=True)
class CollectionPrompt:
    """Everything needed to ask a member for their IGN."""

    community_id: int
    member_id: int
    role_id: int
    prefix: str
    nickname_example: str
