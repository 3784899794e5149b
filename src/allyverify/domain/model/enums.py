"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class RequestStatus(StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DecisionOutcome(StrEnum):
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def status(self) -> RequestStatus:
        """Terminal status a request reaches when this outcome is applied."""
        if self is DecisionOutcome.APPROVE:
            return RequestStatus.APPROVED
        return RequestStatus.REJECTED
