"""Last accepted identity of a community member."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(eq=False, kw_only=True)
class MemberRecord:
    community_id: int
    member_id: int
    ign: str | None = None
    # reserved: nothing sets or reads this yet
    locked: bool = False
    updated_at: datetime | None = None

    def accept_ign(self, ign: str, *, at: datetime) -> None:
        self.ign = ign
        self.updated_at = at
