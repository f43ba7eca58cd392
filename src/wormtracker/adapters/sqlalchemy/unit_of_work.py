"""SQLAlchemy-backed unit of work for the local mirror and store links.

The engine is module state: ``startup()`` once per process (or per test),
then every ``SqlAlchemyTrackerUnitOfWork()`` opens its own short session.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from wormtracker.adapters.sqlalchemy.mappings import create_all_tables
from wormtracker.adapters.sqlalchemy.repositories import (
    SqlAlchemyMirrorRepository,
    SqlAlchemyStoreLinkRepository,
)
from wormtracker.config import get_database_config
from wormtracker.domain.ports import TrackerRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the mirror database is used before ``startup()`` or reconfigured twice."""


@dataclass(slots=True)
class _Database:
    engine: Engine
    sessions: sessionmaker[Session]


_database: _Database | None = None


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the adapter to ``engine`` (or a new one for ``database_uri``) and create tables."""

    global _database  # noqa: PLW0603
    if _database is not None and not force:
        raise StartupError("Mirror database already started; pass force=True to rebind")

    bound = engine or create_engine(database_uri or get_database_config().uri, future=True)
    create_all_tables(bound)
    _database = _Database(engine=bound, sessions=sessionmaker(bind=bound, expire_on_commit=False))
    log.debug("Mirror database bound to %s", bound.url)


def shutdown() -> None:
    global _database  # noqa: PLW0603
    if _database is not None:
        _database.engine.dispose()
    _database = None


def configured_engine() -> Engine | None:
    return _database.engine if _database is not None else None


def is_started() -> bool:
    return _database is not None


class SqlAlchemyTrackerUnitOfWork:
    """One session over the mirror snapshot and store link tables.

    Leaving the block with an exception rolls back; otherwise nothing is
    written unless ``commit()`` was called.
    """

    def __init__(self) -> None:
        if _database is None:
            raise StartupError(
                "Mirror database not started. Call "
                "wormtracker.adapters.sqlalchemy.startup() before opening a unit of work."
            )
        self._sessions = _database.sessions
        self._session: Session | None = None
        self._repositories: TrackerRepositories | None = None

    def __enter__(self) -> SqlAlchemyTrackerUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work already entered")
        self._session = self._sessions()
        self._repositories = TrackerRepositories(
            mirrors=SqlAlchemyMirrorRepository(self._session),
            store_links=SqlAlchemyStoreLinkRepository(self._session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        if exc_type is not None:
            session.rollback()
        session.close()
        self._session = None
        self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work used outside its with-block")
        return self._session

    @property
    def repositories(self) -> TrackerRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work used outside its with-block")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from wormtracker.domain.ports import TrackerUnitOfWork

    _uow_check: TrackerUnitOfWork = SqlAlchemyTrackerUnitOfWork()
