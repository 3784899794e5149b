"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from allyverify.adapters.sqlalchemy.mappings import alliance_table, request_table
from allyverify.domain.errors import Conflict, NotFound
from allyverify.domain.model import (
    AllianceMapping,
    MemberRecord,
    RequestStatus,
    VerificationRequest,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Sequence
    from datetime import datetime

    from sqlalchemy.engine import CursorResult
    from sqlalchemy.orm import Session

    from allyverify.domain.model import DecisionOutcome


class SqlAlchemyAllianceRegistry:
    def __init__(self, session: Session) -> None:
        self.session = session

    def upsert(
        self,
        community_id: int,
        role_id: int,
        prefix: str,
        approval_channel_id: int,
    ) -> AllianceMapping:
        mapping = self.get(community_id, role_id)
        if mapping is None:
            mapping = AllianceMapping(
                community_id=community_id,
                role_id=role_id,
                prefix=prefix,
                approval_channel_id=approval_channel_id,
            )
            self.session.add(mapping)
        else:
            # approver list survives re-adding an alliance
            mapping.reconfigure(prefix=prefix, approval_channel_id=approval_channel_id)
        self.session.flush()
        return mapping

    def update(
        self,
        community_id: int,
        role_id: int,
        *,
        prefix: str | None = None,
        approval_channel_id: int | None = None,
        enabled: bool | None = None,
    ) -> AllianceMapping:
        mapping = self._require(community_id, role_id)
        mapping.apply_changes(
            prefix=prefix,
            approval_channel_id=approval_channel_id,
            enabled=enabled,
        )
        self.session.flush()
        return mapping

    def set_approvers(
        self,
        community_id: int,
        role_id: int,
        role_ids: Iterable[int],
    ) -> AllianceMapping:
        mapping = self._require(community_id, role_id)
        mapping.set_approvers(role_ids)
        self.session.flush()
        return mapping

    def get(self, community_id: int, role_id: int) -> AllianceMapping | None:
        return self.session.get(AllianceMapping, (community_id, role_id))

    def list_all(self, community_id: int) -> Sequence[AllianceMapping]:
        stmt = select(AllianceMapping).where(alliance_table.c.community_id == community_id)
        return self.session.execute(stmt).scalars().all()

    def list_enabled(self, community_id: int) -> Sequence[AllianceMapping]:
        stmt = (
            select(AllianceMapping)
            .where(alliance_table.c.community_id == community_id)
            .where(alliance_table.c.enabled.is_(True))
        )
        return self.session.execute(stmt).scalars().all()

    def find_for_member(
        self,
        community_id: int,
        member_role_ids: Collection[int],
    ) -> AllianceMapping | None:
        held = set(member_role_ids)
        if not held:
            return None
        for mapping in self.list_enabled(community_id):
            if mapping.role_id in held:
                return mapping
        return None

    def _require(self, community_id: int, role_id: int) -> AllianceMapping:
        mapping = self.get(community_id, role_id)
        if mapping is None:
            raise NotFound(f"No alliance mapping exists for role {role_id}.")
        return mapping


class SqlAlchemyMembershipStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def set_ign(self, community_id: int, member_id: int, ign: str, *, at: datetime) -> None:
        record = self.session.get(MemberRecord, (community_id, member_id))
        if record is None:
            record = MemberRecord(community_id=community_id, member_id=member_id)
            self.session.add(record)
        record.accept_ign(ign, at=at)
        self.session.flush()

    def get_ign(self, community_id: int, member_id: int) -> str | None:
        record = self.session.get(MemberRecord, (community_id, member_id))
        if record is None:
            return None
        return record.ign or None


class SqlAlchemyRequestLedger:
    def __init__(self, session: Session) -> None:
        self.session = session

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
        if self.get(community_id, request_id) is not None:
            raise Conflict(f"Request {request_id} already exists.")
        request = VerificationRequest(
            community_id=community_id,
            request_id=request_id,
            member_id=member_id,
            role_id=role_id,
            ign=ign,
            status=RequestStatus.PENDING,
            created_at=at,
        )
        self.session.add(request)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # lost an insert race against another writer
            raise Conflict(f"Request {request_id} already exists.") from exc
        return request

    def get(self, community_id: int, request_id: str) -> VerificationRequest | None:
        return self.session.get(VerificationRequest, (community_id, request_id))

    def decide(
        self,
        community_id: int,
        request_id: str,
        outcome: DecisionOutcome,
        decider_id: int | None,
        *,
        at: datetime,
    ) -> bool:
        # Single conditional UPDATE; the row count tells us who won. Instances
        # already loaded into this session are not refreshed.
        stmt = (
            update(request_table)
            .where(request_table.c.community_id == community_id)
            .where(request_table.c.request_id == request_id)
            .where(request_table.c.status == RequestStatus.PENDING)
            .values(status=outcome.status, decided_by=decider_id, decided_at=at)
        )
        result = cast("CursorResult[Any]", self.session.execute(stmt))
        return result.rowcount == 1


if TYPE_CHECKING:
    from allyverify.domain.ports.persistence import (
        AllianceRegistry,
        MembershipStore,
        RequestLedger,
    )

    _session_stub = cast("Session", object())
    _alliance_check: AllianceRegistry = SqlAlchemyAllianceRegistry(_session_stub)
    _member_check: MembershipStore = SqlAlchemyMembershipStore(_session_stub)
    _ledger_check: RequestLedger = SqlAlchemyRequestLedger(_session_stub)
