"""Who may decide verification requests for an alliance."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from allyverify.domain.model import AllianceMapping, MemberSnapshot


def can_decide(actor: MemberSnapshot, mapping: AllianceMapping) -> bool:
    """Return whether ``actor`` may approve or reject requests for ``mapping``.

    Resolution order:

    1. administrators are always allowed;
    2. with a configured approver list, holding any listed role is required;
    3. with no approvers configured, holders of the alliance role itself decide.

    The third tier lets a member approve their own submission. That is kept
    on purpose until the alliance configures explicit approvers.
    """

    if actor.is_administrator:
        return True
    if mapping.approver_role_ids:
        return actor.has_any_role(mapping.approver_role_ids)
    return actor.has_role(mapping.role_id)
