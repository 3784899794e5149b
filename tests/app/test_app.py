from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from allyverify import app as app_module
from allyverify.adapters.sqlalchemy.unit_of_work import configured_engine, is_started, shutdown
from allyverify.config import DiscordConfig
from allyverify.domain.administration import add_alliance
from allyverify.domain.policy import VerificationPolicy

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from allyverify.adapters.sqlalchemy.unit_of_work import SqlAlchemyVerificationUnitOfWork


@pytest.fixture
def clean_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


@pytest.mark.usefixtures("clean_state")
def test_initialise_database_creates_file(tmp_path: Path) -> None:
    database = tmp_path / "bot.db"

    engine = app_module.initialise_database(database_uri=f"sqlite+pysqlite:///{database}")

    assert is_started()
    assert configured_engine() is engine
    assert database.exists()


@pytest.mark.usefixtures("clean_state")
def test_initialise_database_can_run_twice(tmp_path: Path) -> None:
    uri = f"sqlite+pysqlite:///{tmp_path / 'bot.db'}"

    app_module.initialise_database(database_uri=uri)
    second = app_module.initialise_database(database_uri=uri)

    assert configured_engine() is second


def test_list_alliances_for_cli_uses_given_store(
    sqlite_unit_of_work: Callable[[], SqlAlchemyVerificationUnitOfWork],
) -> None:
    add_alliance(
        unit_of_work_factory=sqlite_unit_of_work,
        community_id=7,
        role_id=8,
        prefix="ABC",
        approval_channel_id=9,
    )

    mappings = app_module.list_alliances_for_cli(7, unit_of_work_factory=sqlite_unit_of_work)

    assert [(m.role_id, m.prefix) for m in mappings] == [(8, "ABC")]


def test_build_bot_uses_discord_settings(
    sqlite_unit_of_work: Callable[[], SqlAlchemyVerificationUnitOfWork],
) -> None:
    policy = VerificationPolicy(log_channel_name=None)

    bot = app_module.build_bot(
        policy=policy,
        discord_config=DiscordConfig(token="token", guild_id=55),
        unit_of_work_factory=sqlite_unit_of_work,
    )

    assert bot.guild_id == 55
    assert bot.engine.policy is policy
