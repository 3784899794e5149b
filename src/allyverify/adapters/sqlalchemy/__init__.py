"""SQLAlchemy adapter package for allyverify."""

from __future__ import annotations

from .mappings import (
    alliance_table,
    create_all_tables,
    mapper_registry,
    member_table,
    request_table,
    start_mappers,
)
from .repositories import (
    SqlAlchemyAllianceRegistry,
    SqlAlchemyMembershipStore,
    SqlAlchemyRequestLedger,
)
from .unit_of_work import (
    SqlAlchemyVerificationUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyAllianceRegistry",
    "SqlAlchemyMembershipStore",
    "SqlAlchemyRequestLedger",
    "SqlAlchemyVerificationUnitOfWork",
    "StartupError",
    "alliance_table",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "member_table",
    "mapper_registry",
    "request_table",
    "shutdown",
    "start_mappers",
    "startup",
]
