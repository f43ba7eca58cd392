"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import MirrorRepository, MirrorSnapshot, StoreLinkRepository
from .store import DocumentStore, Oracle, OracleError, StatusSink, StoreError, StoreFiles
from .unit_of_work import (
    RepositoryCollection,
    TrackerRepositories,
    TrackerUnitOfWork,
    UnitOfWork,
)

__all__ = [
    "DocumentStore",
    "MirrorRepository",
    "MirrorSnapshot",
    "Oracle",
    "OracleError",
    "RepositoryCollection",
    "StatusSink",
    "StoreError",
    "StoreFiles",
    "StoreLinkRepository",
    "TrackerRepositories",
    "TrackerUnitOfWork",
    "UnitOfWork",
]
