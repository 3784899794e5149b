from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, inspect, insert, select

from allyverify.adapters.sqlalchemy import create_all_tables, start_mappers
from allyverify.adapters.sqlalchemy.mappings import (
    alliance_table,
    mapper_registry,
    request_table,
)
from allyverify.domain.model import RequestStatus

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


def test_migrations_match_mapped_metadata(sqlite_engine: Engine) -> None:
    inspector = inspect(sqlite_engine)
    migrated = set(inspector.get_table_names()) - {"alembic_version"}

    assert migrated == set(mapper_registry.metadata.tables)
    for name, table in mapper_registry.metadata.tables.items():
        columns = {column["name"] for column in inspector.get_columns(name)}
        assert columns == set(table.columns.keys()), name


def test_create_all_tables_builds_schema_without_alembic() -> None:
    engine = create_engine("sqlite+pysqlite:///:memory:")
    start_mappers()
    create_all_tables(engine)

    assert {"alliances", "members", "requests"} <= set(inspect(engine).get_table_names())
    engine.dispose()


def test_server_defaults_fill_optional_alliance_columns(sqlite_engine: Engine) -> None:
    with sqlite_engine.begin() as connection:
        connection.execute(
            insert(alliance_table).values(
                community_id=1, role_id=2, prefix="ABC", approval_channel_id=3
            )
        )
        row = connection.execute(select(alliance_table)).one()

    assert row.approver_role_ids == ()
    assert row.enabled is True


def test_request_status_and_timestamps_round_trip(sqlite_engine: Engine) -> None:
    created = datetime(2026, 5, 4, 3, 2, 1, tzinfo=UTC)
    with sqlite_engine.begin() as connection:
        connection.execute(
            insert(request_table).values(
                community_id=1,
                request_id="1_2",
                member_id=2,
                role_id=3,
                ign="Hero",
                status=RequestStatus.APPROVED,
                created_at=created,
            )
        )
        row = connection.execute(select(request_table)).one()

    assert row.status is RequestStatus.APPROVED
    assert row.created_at == created
    assert row.created_at.tzinfo is not None
