"""Verification request lifecycle: trigger, collect, decide, apply.

The engine holds no verification state of its own. Every operation reads
through a fresh unit of work, and no unit of work is kept open across an
``await``, so concurrent handlers never act on each other's uncommitted or
cached rows. The ledger's conditional transition is the only point where
two decisions on the same request are serialised.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from allyverify.domain.authorization import can_decide
from allyverify.domain.errors import (
    ChannelUnavailable,
    ExternalFailure,
    Forbidden,
    InvalidInput,
    NotFound,
)
from allyverify.domain.interactions import Decision, OpenCollectionForm, SubmitIgn
from allyverify.domain.model import (
    AllianceMapping,
    CollectionPrompt,
    DecisionOutcome,
    MemberSnapshot,
    RequestStatus,
    VerificationRequest,
    new_request_id,
)
from allyverify.domain.nickname import NicknameSynchronizer

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from allyverify.domain.policy import VerificationPolicy
    from allyverify.domain.ports.platform import AuditNotifier, CommunityGateway
    from allyverify.domain.ports.unit_of_work import VerificationUnitOfWork

UnitOfWorkFactory = Callable[[], "VerificationUnitOfWork"]
Clock = Callable[[], datetime]

log = getLogger(__name__)

IGN_EXAMPLE_PLACEHOLDER = "YOUR_IGN"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class MemberUpdateAction(StrEnum):
    IGNORED = "ignored"
    BYPASSED = "bypassed"
    PROMPTED = "prompted"
    PROMPT_UNDELIVERED = "prompt_undelivered"
    NICKNAME_IN_SYNC = "nickname_in_sync"
    NICKNAME_REAPPLIED = "nickname_reapplied"
    NICKNAME_REAPPLY_FAILED = "nickname_reapply_failed"


@dataclass(frozen=True, slots=True)
class MemberUpdateResult:
    action: MemberUpdateAction
    mapping: AllianceMapping | None = None
    nickname: str | None = None


@dataclass(frozen=True, slots=True)
class CollectionForm:
    """IGN form to show; ``token`` identifies the submission it produces."""

    token: SubmitIgn
    min_length: int
    max_length: int


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    request: VerificationRequest
    mapping: AllianceMapping
    nickname_preview: str


@dataclass(frozen=True, slots=True)
class DecisionResult:
    """Outcome of one decision attempt.

    ``transitioned`` is true only for the attempt that moved the request out of
    PENDING. ``request`` is the row as stored after the attempt, so ``status``
    and ``request.decided_by`` reflect whoever decided it.
    """

    request: VerificationRequest
    status: RequestStatus
    transitioned: bool
    stale: bool = False
    auto_rejected: bool = False
    target: MemberSnapshot | None = None
    nickname: str | None = None
    nickname_applied: bool = False
    role_granted: bool = False


class VerificationEngine:
    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        gateway: CommunityGateway,
        notifier: AuditNotifier,
        policy: VerificationPolicy,
        clock: Clock = _utcnow,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._gateway = gateway
        self._notifier = notifier
        self._policy = policy
        self._clock = clock
        self.nicknames = NicknameSynchronizer(policy, gateway)

    @property
    def policy(self) -> VerificationPolicy:
        return self._policy

    # Trigger ------------------------------------------------------------------

    async def handle_member_update(
        self,
        before_role_ids: Collection[int],
        member: MemberSnapshot,
    ) -> MemberUpdateResult:
        """React to a member's roles or nickname changing."""

        if self._has_bypass(member):
            return MemberUpdateResult(MemberUpdateAction.BYPASSED)

        previous = set(before_role_ids)
        added = [role_id for role_id in member.role_ids if role_id not in previous]
        mapping = self._first_enabled_alliance(member.community_id, added) if added else None

        if mapping is None:
            if self._policy.enforce_on_manual_nick_change:
                return await self._enforce_nickname(member)
            return MemberUpdateResult(MemberUpdateAction.IGNORED)

        return await self._prompt_for_ign(member, mapping)

    async def start_manual_verification(self, community_id: int, member_id: int) -> CollectionForm:
        """Staff-initiated collection for a member's first enabled alliance."""

        member = await self._gateway.fetch_member(community_id, member_id)
        if member is None:
            raise NotFound("Member not found.")

        with self._unit_of_work_factory() as uow:
            mapping = uow.repositories.alliances.find_for_member(community_id, member.role_ids)
        if mapping is None:
            raise NotFound("That user has no configured alliance role yet.")

        log.info(
            "Manual verification started for member %s in %s (alliance role %s)",
            member_id,
            community_id,
            mapping.role_id,
        )
        return self._collection_form(
            SubmitIgn(community_id=community_id, member_id=member_id, role_id=mapping.role_id)
        )

    def open_collection_form(self, token: OpenCollectionForm, actor_id: int) -> CollectionForm:
        if actor_id != token.member_id:
            raise Forbidden("This button isn't for you.")
        return self._collection_form(
            SubmitIgn(
                community_id=token.community_id,
                member_id=token.member_id,
                role_id=token.role_id,
            )
        )

    # Submission ---------------------------------------------------------------

    async def submit_ign(self, token: SubmitIgn, raw_ign: str) -> SubmissionResult:
        """Record a PENDING request for ``raw_ign`` and post it for approval."""

        ign = self.validate_ign(raw_ign)

        with self._unit_of_work_factory() as uow:
            mapping = uow.repositories.alliances.get(token.community_id, token.role_id)
        if mapping is None or not mapping.enabled:
            raise NotFound("That alliance mapping is missing or disabled.")

        if not await self._gateway.approval_channel_available(
            mapping.community_id, mapping.approval_channel_id
        ):
            raise ChannelUnavailable(
                "Approval channel not found or not text-based. Tell an admin to fix it."
            )

        now = self._clock()
        with self._unit_of_work_factory() as uow:
            request = uow.repositories.requests.create(
                token.community_id,
                new_request_id(token.member_id, at=now),
                token.member_id,
                token.role_id,
                ign,
                at=now,
            )
            uow.commit()

        preview = self.nicknames.render(mapping.prefix, ign)
        if not await self._gateway.post_approval_request(mapping, request, preview):
            # nobody could ever decide this request, close it instead of leaving it pending
            self._transition(request, DecisionOutcome.REJECT, None)
            log.warning(
                "Approval post failed for request %s in %s; request closed",
                request.request_id,
                request.community_id,
            )
            raise ChannelUnavailable(
                "Could not post to the approval channel. Tell an admin to fix it."
            )

        log.info(
            "Request %s created for member %s in %s (IGN %r)",
            request.request_id,
            request.member_id,
            request.community_id,
            ign,
        )
        await self._audit(
            request.community_id,
            f"📥 IGN submitted by <@{request.member_id}> for role <@&{request.role_id}>: `{ign}`",
        )
        return SubmissionResult(request=request, mapping=mapping, nickname_preview=preview)

    def validate_ign(self, raw_ign: str) -> str:
        ign = raw_ign.strip()
        low, high = self._policy.ign_min_length, self._policy.ign_max_length
        if not low <= len(ign) <= high:
            raise InvalidInput(f"IGN must be {low}-{high} characters.")
        return ign

    # Decision -----------------------------------------------------------------

    async def decide(self, token: Decision, actor_id: int) -> DecisionResult:
        """Apply an approve/reject decision by ``actor_id``.

        Pressing a button on an already decided request is a no-op that reports
        the current status.
        """

        community_id = token.community_id
        with self._unit_of_work_factory() as uow:
            request = uow.repositories.requests.get(community_id, token.request_id)
            mapping = (
                uow.repositories.alliances.get(community_id, request.role_id)
                if request is not None and request.is_pending
                else None
            )

        if request is None:
            raise NotFound("Request not found.")
        if not request.is_pending:
            return DecisionResult(
                request=request, status=request.status, transitioned=False, stale=True
            )
        if mapping is None:
            raise NotFound("Alliance mapping missing for this request.")

        actor = await self._gateway.fetch_member(community_id, actor_id)
        if actor is None or not can_decide(actor, mapping):
            raise Forbidden("You don't have permission to decide this request.")

        target = await self._gateway.fetch_member(community_id, request.member_id)
        if target is None:
            return await self._auto_reject(request, actor)

        if token.outcome is DecisionOutcome.APPROVE:
            return await self._approve(request, mapping, actor, target)
        return await self._reject(request, actor, target)

    async def _approve(
        self,
        request: VerificationRequest,
        mapping: AllianceMapping,
        actor: MemberSnapshot,
        target: MemberSnapshot,
    ) -> DecisionResult:
        # Side effects run before the ledger transition and may repeat under a
        # race; they are idempotent and are not rolled back.
        with self._unit_of_work_factory() as uow:
            uow.repositories.members.set_ign(
                request.community_id, target.member_id, request.ign, at=self._clock()
            )
            uow.commit()

        nickname = self.nicknames.render(mapping.prefix, request.ign)
        nickname_applied = await self.nicknames.apply(target, nickname)
        role_granted = await self._grant_verified_role(target)

        transitioned, decided = self._transition(
            request, DecisionOutcome.APPROVE, actor.member_id
        )
        result = DecisionResult(
            request=decided,
            status=decided.status,
            transitioned=transitioned,
            target=target,
            nickname=nickname,
            nickname_applied=nickname_applied,
            role_granted=role_granted,
        )
        if not transitioned:
            log.info(
                "Request %s in %s was already %s when %s approved it",
                request.request_id,
                request.community_id,
                decided.status,
                actor.member_id,
            )
            return result

        log.info(
            "Request %s in %s approved by %s (nickname set: %s, role granted: %s)",
            request.request_id,
            request.community_id,
            actor.member_id,
            nickname_applied,
            role_granted,
        )
        delivered = await self._gateway.send_direct_message(
            target, f"✅ You've been verified. Your nickname has been set to: `{nickname}`"
        )
        if not delivered:
            log.warning("Could not DM member %s about their approval", target.member_id)
        await self._audit(
            request.community_id,
            f"✅ Approved {target.mention} IGN=`{request.ign}` "
            f"nickSet={str(nickname_applied).lower()} "
            f"roleGranted={str(role_granted).lower()}",
        )
        return result

    async def _reject(
        self,
        request: VerificationRequest,
        actor: MemberSnapshot,
        target: MemberSnapshot,
    ) -> DecisionResult:
        transitioned, decided = self._transition(request, DecisionOutcome.REJECT, actor.member_id)
        if transitioned:
            log.info(
                "Request %s in %s rejected by %s",
                request.request_id,
                request.community_id,
                actor.member_id,
            )
            await self._audit(
                request.community_id, f"❌ Rejected {target.mention} IGN=`{request.ign}`"
            )
        return DecisionResult(
            request=decided, status=decided.status, transitioned=transitioned, target=target
        )

    async def _auto_reject(
        self,
        request: VerificationRequest,
        actor: MemberSnapshot,
    ) -> DecisionResult:
        transitioned, decided = self._transition(request, DecisionOutcome.REJECT, actor.member_id)
        if transitioned:
            log.info(
                "Request %s in %s auto-rejected: member %s left",
                request.request_id,
                request.community_id,
                request.member_id,
            )
            await self._audit(
                request.community_id,
                f"❌ Auto-rejected <@{request.member_id}> IGN=`{request.ign}` (no longer in server)",
            )
        return DecisionResult(
            request=decided,
            status=decided.status,
            transitioned=transitioned,
            auto_rejected=True,
        )

    def _transition(
        self,
        request: VerificationRequest,
        outcome: DecisionOutcome,
        decider_id: int | None,
    ) -> tuple[bool, VerificationRequest]:
        """Attempt the PENDING transition; returns whether it applied and the stored row."""
        with self._unit_of_work_factory() as uow:
            ledger = uow.repositories.requests
            transitioned = ledger.decide(
                request.community_id,
                request.request_id,
                outcome,
                decider_id,
                at=self._clock(),
            )
            uow.commit()
            current = ledger.get(request.community_id, request.request_id)
        if current is None:
            raise NotFound("Request not found.")
        return transitioned, current

    # Helpers ------------------------------------------------------------------

    def _has_bypass(self, member: MemberSnapshot) -> bool:
        return not self._policy.bypass_role_names.isdisjoint(member.role_names)

    def _first_enabled_alliance(
        self,
        community_id: int,
        role_ids: Iterable[int],
    ) -> AllianceMapping | None:
        with self._unit_of_work_factory() as uow:
            for role_id in role_ids:
                mapping = uow.repositories.alliances.get(community_id, role_id)
                if mapping is not None and mapping.enabled:
                    return mapping
        return None

    def _collection_form(self, token: SubmitIgn) -> CollectionForm:
        return CollectionForm(
            token=token,
            min_length=self._policy.ign_min_length,
            max_length=self._policy.ign_max_length,
        )

    async def _prompt_for_ign(
        self,
        member: MemberSnapshot,
        mapping: AllianceMapping,
    ) -> MemberUpdateResult:
        prompt = CollectionPrompt(
            community_id=member.community_id,
            member_id=member.member_id,
            role_id=mapping.role_id,
            prefix=mapping.prefix,
            nickname_example=self.nicknames.render(mapping.prefix, IGN_EXAMPLE_PLACEHOLDER),
        )
        if await self._gateway.send_collection_prompt(member, prompt):
            log.info(
                "Asked member %s in %s for their IGN (alliance role %s)",
                member.member_id,
                member.community_id,
                mapping.role_id,
            )
            return MemberUpdateResult(MemberUpdateAction.PROMPTED, mapping)

        log.warning("Could not DM member %s to collect IGN", member.member_id)
        await self._audit(
            member.community_id,
            f"⚠️ Could not DM {member.mention} to collect IGN (DMs closed). Use /verify.",
        )
        return MemberUpdateResult(MemberUpdateAction.PROMPT_UNDELIVERED, mapping)

    async def _enforce_nickname(self, member: MemberSnapshot) -> MemberUpdateResult:
        with self._unit_of_work_factory() as uow:
            mapping = uow.repositories.alliances.find_for_member(
                member.community_id, member.role_ids
            )
            ign = (
                uow.repositories.members.get_ign(member.community_id, member.member_id)
                if mapping is not None
                else None
            )
        if mapping is None or ign is None:
            return MemberUpdateResult(MemberUpdateAction.IGNORED, mapping)

        # compare against the rendered name so our own edit echoing back is a no-op
        expected = self.nicknames.render(mapping.prefix, ign)
        if self.nicknames.is_in_sync(member, mapping.prefix, ign):
            return MemberUpdateResult(MemberUpdateAction.NICKNAME_IN_SYNC, mapping, expected)

        if not await self.nicknames.apply(member, expected):
            await self._audit(
                member.community_id,
                f"⚠️ Could not re-apply nickname for {member.mention} → `{expected}`",
            )
            return MemberUpdateResult(MemberUpdateAction.NICKNAME_REAPPLY_FAILED, mapping, expected)

        log.info("Re-applied nickname %r for member %s", expected, member.member_id)
        await self._audit(
            member.community_id, f"🔁 Re-applied nickname for {member.mention} → `{expected}`"
        )
        return MemberUpdateResult(MemberUpdateAction.NICKNAME_REAPPLIED, mapping, expected)

    async def _grant_verified_role(self, member: MemberSnapshot) -> bool:
        role_name = self._policy.verified_role_name
        if role_name is None:
            return False
        try:
            granted = await self._gateway.grant_role(member, role_name)
        except ExternalFailure as exc:
            log.warning("Could not grant %r to member %s: %s", role_name, member.member_id, exc)
            return False
        if not granted:
            log.info("No %r role in %s; skipping", role_name, member.community_id)
        return granted

    async def _audit(self, community_id: int, message: str) -> None:
        if not await self._notifier.audit(community_id, message):
            log.debug("Audit line not delivered in %s: %s", community_id, message)
