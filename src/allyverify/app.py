"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from allyverify.adapters.discord import AllianceVerificationBot
from allyverify.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyVerificationUnitOfWork,
    is_started,
    shutdown,
    startup,
)
from allyverify.config import get_discord_config, load_policy
from allyverify.domain.administration import list_alliances
from allyverify.domain.ports.unit_of_work import VerificationUnitOfWork

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from allyverify.config import DiscordConfig
    from allyverify.domain.model import AllianceMapping
    from allyverify.domain.policy import VerificationPolicy

UnitOfWorkFactory = Callable[[], VerificationUnitOfWork]

log = getLogger(__name__)


def initialise_database(*, database_uri: str | None = None) -> Engine:
    """Create or upgrade the schema and leave the store ready for use."""

    if is_started():
        shutdown()
    engine = startup(database_uri=database_uri)
    log.info("Database ready at %s", engine.url.render_as_string(hide_password=True))
    return engine


def build_bot(
    *,
    policy: VerificationPolicy,
    discord_config: DiscordConfig,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> AllianceVerificationBot:
    return AllianceVerificationBot(
        unit_of_work_factory=unit_of_work_factory or SqlAlchemyVerificationUnitOfWork,
        policy=policy,
        guild_id=discord_config.guild_id,
    )


def run_bot(*, policy: VerificationPolicy | None = None) -> None:
    """Start the store and run the bot until it disconnects."""

    discord_config = get_discord_config()
    effective_policy = policy or load_policy()
    if not is_started():
        initialise_database()

    bot = build_bot(policy=effective_policy, discord_config=discord_config)
    log.info(
        "Starting bot (guild=%s, template=%r, enforce drift=%s)",
        discord_config.guild_id or "global",
        effective_policy.nick_template,
        effective_policy.enforce_on_manual_nick_change,
    )
    try:
        # logging is configured by the caller
        bot.run(discord_config.token, log_handler=None)
    finally:
        shutdown()


def list_alliances_for_cli(
    community_id: int,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[AllianceMapping]:
    if unit_of_work_factory is None:
        if not is_started():
            initialise_database()
        unit_of_work_factory = SqlAlchemyVerificationUnitOfWork
    return list_alliances(unit_of_work_factory=unit_of_work_factory, community_id=community_id)
