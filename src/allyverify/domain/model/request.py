"""Verification requests, the audit trail of IGN decisions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from allyverify.domain.model.enums import RequestStatus

if TYPE_CHECKING:
    from datetime import datetime


def new_request_id(member_id: int, *, at: datetime) -> str:
    """Millisecond timestamp followed by the member id, e.g. ``1718000000000_42``."""

    return f"{int(at.timestamp() * 1000)}_{member_id}"


@dataclass(eq=False, kw_only=True)
class VerificationRequest:
    """A submitted IGN awaiting (or carrying) a single approval decision.

    Status only ever moves PENDING -> APPROVED or PENDING -> REJECTED; the
    transition itself is performed by the request ledger, never by mutating
    this object.
    """

    community_id: int
    request_id: str
    member_id: int
    role_id: int
    ign: str
    status: RequestStatus = RequestStatus.PENDING
    created_at: datetime | None = None
    decided_by: int | None = None
    decided_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status is RequestStatus.PENDING
