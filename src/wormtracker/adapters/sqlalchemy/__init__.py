"""SQLAlchemy adapter package for the tracker's local state."""

from __future__ import annotations

from .mappings import (
    create_all_tables,
    mapper_registry,
    mirror_snapshot_table,
    store_link_table,
)
from .repositories import SqlAlchemyMirrorRepository, SqlAlchemyStoreLinkRepository
from .unit_of_work import (
    SqlAlchemyTrackerUnitOfWork,
    StartupError,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyMirrorRepository",
    "SqlAlchemyStoreLinkRepository",
    "SqlAlchemyTrackerUnitOfWork",
    "StartupError",
    "create_all_tables",
    "is_started",
    "mapper_registry",
    "mirror_snapshot_table",
    "shutdown",
    "startup",
    "store_link_table",
]
