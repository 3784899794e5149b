"""SQLAlchemy mapping metadata for the verification domain model."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    String,
    Table,
    Text,
    TypeDecorator,
    false,
    orm,
    text,
    true,
)
from sqlalchemy.orm import configure_mappers

from allyverify.domain.model import (
    AllianceMapping,
    MemberRecord,
    RequestStatus,
    VerificationRequest,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class RoleIdListType(TypeDecorator[tuple[int, ...]]):
    """Role ids stored as a JSON array of strings (snowflakes overflow JS numbers)."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: tuple[int, ...] | None, dialect: Dialect) -> str:
        _ = dialect
        return json.dumps([str(role_id) for role_id in value or ()])

    def process_result_value(self, value: str | None, dialect: Dialect) -> tuple[int, ...]:
        _ = dialect
        if not value:
            return ()
        try:
            loaded = json.loads(value)
        except json.JSONDecodeError:
            log.warning("Discarding unreadable approver list %r", value)
            return ()
        if not isinstance(loaded, list):
            return ()
        items = cast(list[Any], loaded)
        role_ids: list[int] = []
        for item in items:
            if isinstance(item, int) or (isinstance(item, str) and item.isdigit()):
                role_ids.append(int(item))
        return tuple(role_ids)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

alliance_table = Table(
    "alliances",
    mapper_registry.metadata,
    Column("community_id", BigInteger, primary_key=True, autoincrement=False),
    Column("role_id", BigInteger, primary_key=True, autoincrement=False),
    Column("prefix", String, nullable=False),
    Column("approval_channel_id", BigInteger, nullable=False),
    Column("approver_role_ids", RoleIdListType, nullable=False, server_default=text("'[]'")),
    Column("enabled", Boolean, nullable=False, server_default=true()),
)

member_table = Table(
    "members",
    mapper_registry.metadata,
    Column("community_id", BigInteger, primary_key=True, autoincrement=False),
    Column("member_id", BigInteger, primary_key=True, autoincrement=False),
    Column("ign", String, nullable=True),
    Column("locked", Boolean, nullable=False, server_default=false()),
    Column("updated_at", UTCDateTime, nullable=True),
)

request_table = Table(
    "requests",
    mapper_registry.metadata,
    Column("community_id", BigInteger, primary_key=True, autoincrement=False),
    Column("request_id", String, primary_key=True),
    Column("member_id", BigInteger, nullable=False),
    Column("role_id", BigInteger, nullable=False),
    Column("ign", String, nullable=False),
    Column(
        "status",
        Enum(RequestStatus, native_enum=False, length=16),
        nullable=False,
    ),
    Column("created_at", UTCDateTime, nullable=False),
    Column("decided_by", BigInteger, nullable=True),
    Column("decided_at", UTCDateTime, nullable=True),
    Index("ix_requests_community_member", "community_id", "member_id"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(AllianceMapping, alliance_table)
    mapper_registry.map_imperatively(MemberRecord, member_table)
    mapper_registry.map_imperatively(VerificationRequest, request_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
