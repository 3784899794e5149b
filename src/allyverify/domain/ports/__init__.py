"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import AllianceRegistry, MembershipStore, RequestLedger
from .platform import AuditNotifier, CommunityGateway
from .unit_of_work import (
    RepositoryCollection,
    UnitOfWork,
    VerificationRepositories,
    VerificationUnitOfWork,
)

__all__ = [
    "AllianceRegistry",
    "AuditNotifier",
    "CommunityGateway",
    "MembershipStore",
    "RepositoryCollection",
    "RequestLedger",
    "UnitOfWork",
    "VerificationRepositories",
    "VerificationUnitOfWork",
]
