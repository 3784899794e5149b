"""Public domain model surface."""

from __future__ import annotations

from allyverify.domain.model.alliance import AllianceMapping, normalize_prefix, normalize_role_ids
from allyverify.domain.model.community import CollectionPrompt, MemberSnapshot
from allyverify.domain.model.enums import DecisionOutcome, RequestStatus
from allyverify.domain.model.membership import MemberRecord
from allyverify.domain.model.request import VerificationRequest, new_request_id

__all__ = [
    "AllianceMapping",
    "CollectionPrompt",
    "DecisionOutcome",
    "MemberRecord",
    "MemberSnapshot",
    "RequestStatus",
    "VerificationRequest",
    "new_request_id",
    "normalize_prefix",
    "normalize_role_ids",
]
