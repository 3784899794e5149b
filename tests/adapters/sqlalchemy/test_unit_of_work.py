from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from allyverify.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyVerificationUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_unit_of_work_requires_startup() -> None:
    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemyVerificationUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:")
    engine_b = create_engine("sqlite+pysqlite:///:memory:")

    startup(engine=engine_a)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b


def test_repositories_unavailable_outside_context(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    uow = SqlAlchemyVerificationUnitOfWork()

    with pytest.raises(StartupError):
        _ = uow.repositories


def test_commit_persists_across_units(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    now = datetime(2026, 1, 1, tzinfo=UTC)

    with SqlAlchemyVerificationUnitOfWork() as uow:
        uow.repositories.members.set_ign(1, 2, "Hero", at=now)
        uow.commit()

    with SqlAlchemyVerificationUnitOfWork() as uow:
        assert uow.repositories.members.get_ign(1, 2) == "Hero"


def test_exception_rolls_back(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    now = datetime(2026, 1, 1, tzinfo=UTC)

    with pytest.raises(RuntimeError), SqlAlchemyVerificationUnitOfWork() as uow:
        uow.repositories.members.set_ign(1, 2, "Hero", at=now)
        raise RuntimeError("boom")

    with SqlAlchemyVerificationUnitOfWork() as uow:
        assert uow.repositories.members.get_ign(1, 2) is None


def test_uncommitted_work_is_discarded_on_close(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    now = datetime(2026, 1, 1, tzinfo=UTC)

    with SqlAlchemyVerificationUnitOfWork() as uow:
        uow.repositories.alliances.upsert(1, 5, "ABC", 9)
        uow.repositories.members.set_ign(1, 2, "Hero", at=now)

    with SqlAlchemyVerificationUnitOfWork() as uow:
        assert uow.repositories.alliances.get(1, 5) is None
        assert uow.repositories.members.get_ign(1, 2) is None
