"""SQLAlchemy table metadata for the local mirror and store links."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Column, DateTime, Dialect, String, Table, Text, TypeDecorator, orm

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


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "pk": "pk_%(table_name)s",
}

# Core tables -----------------------------------------------------------------

mirror_snapshot_table = Table(
    "mirror_snapshot",
    mapper_registry.metadata,
    Column("context_id", String, primary_key=True),
    Column("store_id", String, nullable=True),
    Column("documents", Text, nullable=False),
    Column("saved_at", UTCDateTime(), nullable=False),
)

store_link_table = Table(
    "store_link",
    mapper_registry.metadata,
    Column("context_id", String, primary_key=True),
    Column("store_id", String, nullable=False),
    Column("linked_at", UTCDateTime(), nullable=False, index=True),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
