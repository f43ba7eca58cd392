from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session

from wormtracker.adapters.sqlalchemy import create_all_tables
from wormtracker.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyTrackerUnitOfWork,
    shutdown,
    startup,
)
from tests.helpers.fakes import FakeUnitOfWorkFactory, StatusRecorder
from tests.helpers.worlds import fixed_clock, make_character, make_world

os.environ.setdefault("WORMTRACKER_DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from datetime import datetime

    from wormtracker.domain.world import WorldModel


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    with Session(sqlite_engine) as session:
        yield session


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyTrackerUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield SqlAlchemyTrackerUnitOfWork
    finally:
        shutdown()


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return fixed_clock()


@pytest.fixture
def uow_factory() -> FakeUnitOfWorkFactory:
    return FakeUnitOfWorkFactory()


@pytest.fixture
def status() -> StatusRecorder:
    return StatusRecorder()


@pytest.fixture
def world() -> WorldModel:
    return make_world(
        make_character(
            "Taylor Hebert",
            alias="Skitter",
            aliases=["Skitter", "Weaver"],
            faction="Undersiders",
        ),
        make_character("Lisa Wilbourn", alias="Tattletale", faction="Undersiders"),
    )
