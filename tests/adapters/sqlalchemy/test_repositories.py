"""Alliance registry, membership store and request ledger against SQLite."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, text

from allyverify.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyVerificationUnitOfWork,
    shutdown,
    startup,
)
from allyverify.domain.errors import Conflict, NotFound
from allyverify.domain.model import DecisionOutcome, RequestStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    UowFactory = Callable[[], SqlAlchemyVerificationUnitOfWork]

GUILD = 10
OTHER_GUILD = 11
NOW = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)


# Alliance registry -----------------------------------------------------------


def test_upsert_creates_enabled_mapping(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.alliances.upsert(GUILD, 1, "  ABC ", 99)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        mapping = uow.repositories.alliances.get(GUILD, 1)

    assert mapping is not None
    assert mapping.prefix == "ABC"
    assert mapping.approval_channel_id == 99
    assert mapping.approver_role_ids == ()
    assert mapping.enabled is True


def test_upsert_overwrites_prefix_and_keeps_approvers(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        alliances = uow.repositories.alliances
        alliances.upsert(GUILD, 1, "ABC", 99)
        alliances.set_approvers(GUILD, 1, [5, 6])
        alliances.update(GUILD, 1, enabled=False)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        uow.repositories.alliances.upsert(GUILD, 1, "XYZ", 100)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        mapping = uow.repositories.alliances.get(GUILD, 1)

    assert mapping is not None
    assert mapping.prefix == "XYZ"
    assert mapping.approval_channel_id == 100
    assert mapping.approver_role_ids == (5, 6)
    assert mapping.enabled is True


def test_upsert_rejects_blank_prefix(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow, pytest.raises(ValueError, match="prefix"):
        uow.repositories.alliances.upsert(GUILD, 1, "   ", 99)


def test_update_only_touches_given_fields(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.alliances.upsert(GUILD, 1, "ABC", 99)
        uow.repositories.alliances.update(GUILD, 1, approval_channel_id=123)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        mapping = uow.repositories.alliances.get(GUILD, 1)

    assert mapping is not None
    assert mapping.prefix == "ABC"
    assert mapping.approval_channel_id == 123
    assert mapping.enabled is True


def test_update_and_set_approvers_require_existing_mapping(
    sqlite_unit_of_work: UowFactory,
) -> None:
    with sqlite_unit_of_work() as uow:
        with pytest.raises(NotFound):
            uow.repositories.alliances.update(GUILD, 404, prefix="X")
        with pytest.raises(NotFound):
            uow.repositories.alliances.set_approvers(GUILD, 404, [1])


def test_set_approvers_deduplicates_and_empty_list_resets(
    sqlite_unit_of_work: UowFactory,
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.alliances.upsert(GUILD, 1, "ABC", 99)
        mapping = uow.repositories.alliances.set_approvers(GUILD, 1, [7, 8, 7])
        uow.commit()
    assert mapping.approver_role_ids == (7, 8)

    with sqlite_unit_of_work() as uow:
        mapping = uow.repositories.alliances.set_approvers(GUILD, 1, [])
        uow.commit()
    assert mapping.approver_role_ids == ()


def test_approver_ids_are_stored_as_json_strings(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.alliances.upsert(GUILD, 1, "ABC", 99)
        uow.repositories.alliances.set_approvers(GUILD, 1, [123456789012345678])
        uow.commit()

    with sqlite_unit_of_work() as uow:
        raw = uow.session.execute(
            text("SELECT approver_role_ids FROM alliances WHERE role_id = 1")
        ).scalar_one()

    assert raw == '["123456789012345678"]'


def test_listing_is_scoped_to_community(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        alliances = uow.repositories.alliances
        alliances.upsert(GUILD, 1, "ABC", 99)
        alliances.upsert(GUILD, 2, "DEF", 99)
        alliances.upsert(OTHER_GUILD, 3, "GHI", 98)
        alliances.update(GUILD, 2, enabled=False)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        all_roles = {m.role_id for m in uow.repositories.alliances.list_all(GUILD)}
        enabled_roles = {m.role_id for m in uow.repositories.alliances.list_enabled(GUILD)}

    assert all_roles == {1, 2}
    assert enabled_roles == {1}


def test_find_for_member_skips_disabled_and_unknown_roles(
    sqlite_unit_of_work: UowFactory,
) -> None:
    with sqlite_unit_of_work() as uow:
        alliances = uow.repositories.alliances
        alliances.upsert(GUILD, 1, "ABC", 99)
        alliances.upsert(GUILD, 2, "DEF", 99)
        alliances.update(GUILD, 1, enabled=False)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        alliances = uow.repositories.alliances
        found = alliances.find_for_member(GUILD, [1, 2, 50])
        missing = alliances.find_for_member(GUILD, [1, 50])
        empty = alliances.find_for_member(GUILD, [])

    assert found is not None
    assert found.role_id == 2
    assert missing is None
    assert empty is None


# Membership store ------------------------------------------------------------


def test_set_ign_upserts(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        assert uow.repositories.members.get_ign(GUILD, 42) is None
        uow.repositories.members.set_ign(GUILD, 42, "First", at=NOW)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        uow.repositories.members.set_ign(GUILD, 42, "Second", at=NOW)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.members.get_ign(GUILD, 42) == "Second"
        assert uow.repositories.members.get_ign(OTHER_GUILD, 42) is None


# Request ledger --------------------------------------------------------------


def test_create_and_get_request(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.requests.create(GUILD, "1_42", 42, 1, "Hero", at=NOW)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        request = uow.repositories.requests.get(GUILD, "1_42")
        assert uow.repositories.requests.get(OTHER_GUILD, "1_42") is None

    assert request is not None
    assert request.status is RequestStatus.PENDING
    assert request.ign == "Hero"
    assert request.created_at == NOW
    assert request.decided_by is None


def test_create_rejects_duplicate_id(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.requests.create(GUILD, "1_42", 42, 1, "Hero", at=NOW)
        uow.commit()

    with sqlite_unit_of_work() as uow, pytest.raises(Conflict):
        uow.repositories.requests.create(GUILD, "1_42", 42, 1, "Other", at=NOW)


def test_decide_transitions_only_once(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.requests.create(GUILD, "1_42", 42, 1, "Hero", at=NOW)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        first = uow.repositories.requests.decide(
            GUILD, "1_42", DecisionOutcome.APPROVE, 7, at=NOW
        )
        second = uow.repositories.requests.decide(
            GUILD, "1_42", DecisionOutcome.REJECT, 8, at=NOW
        )
        uow.commit()

    with sqlite_unit_of_work() as uow:
        request = uow.repositories.requests.get(GUILD, "1_42")

    assert (first, second) == (True, False)
    assert request is not None
    assert request.status is RequestStatus.APPROVED
    assert request.decided_by == 7
    assert request.decided_at == NOW


def test_decide_unknown_request_is_false(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        assert not uow.repositories.requests.decide(
            GUILD, "missing", DecisionOutcome.REJECT, None, at=NOW
        )


@pytest.fixture
def file_backed_unit_of_work(tmp_path: Path) -> Iterator[UowFactory]:
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'ledger.db'}")
    startup(engine=engine, force=True)
    try:
        yield SqlAlchemyVerificationUnitOfWork
    finally:
        shutdown()


def test_concurrent_decisions_have_exactly_one_winner(
    file_backed_unit_of_work: UowFactory,
) -> None:
    with file_backed_unit_of_work() as uow:
        uow.repositories.requests.create(GUILD, "1_42", 42, 1, "Hero", at=NOW)
        uow.commit()

    workers = 8
    barrier = threading.Barrier(workers)

    def decide(index: int) -> bool:
        outcome = DecisionOutcome.APPROVE if index % 2 else DecisionOutcome.REJECT
        barrier.wait()
        with file_backed_unit_of_work() as uow:
            applied = uow.repositories.requests.decide(GUILD, "1_42", outcome, index, at=NOW)
            uow.commit()
        return applied

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(decide, range(workers)))

    assert results.count(True) == 1
    winner = results.index(True)

    with file_backed_unit_of_work() as uow:
        request = uow.repositories.requests.get(GUILD, "1_42")

    assert request is not None
    assert request.decided_by == winner
    expected = RequestStatus.APPROVED if winner % 2 else RequestStatus.REJECTED
    assert request.status is expected
