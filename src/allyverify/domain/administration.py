"""Administrative operations on alliance mappings."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from allyverify.domain.errors import InvalidInput

if TYPE_CHECKING:
    from collections.abc import Iterable

    from allyverify.domain.model import AllianceMapping
    from allyverify.domain.ports.unit_of_work import VerificationUnitOfWork

UnitOfWorkFactory = Callable[[], "VerificationUnitOfWork"]

log = getLogger(__name__)


def parse_role_id_list(raw: str) -> tuple[int, ...]:
    """Parse a comma-separated list of role ids; blanks are skipped."""

    role_ids: list[int] = []
    for chunk in raw.split(","):
        value = chunk.strip()
        if not value:
            continue
        if not (value.isascii() and value.isdigit()):
            raise InvalidInput(f"Not a role id: {value!r}")
        role_ids.append(int(value))
    return tuple(role_ids)


def add_alliance(
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    community_id: int,
    role_id: int,
    prefix: str,
    approval_channel_id: int,
) -> AllianceMapping:
    try:
        with unit_of_work_factory() as uow:
            mapping = uow.repositories.alliances.upsert(
                community_id, role_id, prefix, approval_channel_id
            )
            uow.commit()
    except ValueError as exc:
        raise InvalidInput(str(exc)) from exc
    log.info("Alliance role %s in %s saved with prefix %r", role_id, community_id, mapping.prefix)
    return mapping


def edit_alliance(
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    community_id: int,
    role_id: int,
    prefix: str | None = None,
    approval_channel_id: int | None = None,
    enabled: bool | None = None,
) -> AllianceMapping:
    try:
        with unit_of_work_factory() as uow:
            mapping = uow.repositories.alliances.update(
                community_id,
                role_id,
                prefix=prefix,
                approval_channel_id=approval_channel_id,
                enabled=enabled,
            )
            uow.commit()
    except ValueError as exc:
        raise InvalidInput(str(exc)) from exc
    log.info("Alliance role %s in %s edited (enabled=%s)", role_id, community_id, mapping.enabled)
    return mapping


def set_alliance_approvers(
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    community_id: int,
    role_id: int,
    approver_role_ids: Iterable[int],
) -> AllianceMapping:
    with unit_of_work_factory() as uow:
        mapping = uow.repositories.alliances.set_approvers(
            community_id, role_id, approver_role_ids
        )
        uow.commit()
    log.info(
        "Alliance role %s in %s now has %d approver roles",
        role_id,
        community_id,
        len(mapping.approver_role_ids),
    )
    return mapping


def list_alliances(
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    community_id: int,
) -> list[AllianceMapping]:
    with unit_of_work_factory() as uow:
        return list(uow.repositories.alliances.list_all(community_id))
