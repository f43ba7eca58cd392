from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from wormtracker.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyTrackerUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from wormtracker.domain.ports import MirrorSnapshot
from tests.helpers.worlds import FIXED_NOW

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_sqlalchemy_unit_of_work_requires_startup() -> None:
    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemyTrackerUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b
    assert is_started()


def test_repositories_require_entered_unit_of_work(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(StartupError):
        _ = SqlAlchemyTrackerUnitOfWork().repositories


def test_unit_of_work_persists_mirror_and_link(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyTrackerUnitOfWork() as uow:
        uow.repositories.mirrors.save(
            MirrorSnapshot(
                context_id="ctx-1",
                store_id="gist-1",
                documents={"world_state.json": {"arc": "2"}},
                saved_at=FIXED_NOW,
            )
        )
        uow.repositories.store_links.link("ctx-1", "gist-1", now=FIXED_NOW)
        uow.commit()

    with SqlAlchemyTrackerUnitOfWork() as uow:
        snapshot = uow.repositories.mirrors.get("ctx-1")
        assert snapshot is not None
        assert snapshot.documents == {"world_state.json": {"arc": "2"}}
        assert uow.repositories.store_links.get("ctx-1") == "gist-1"


def test_unit_of_work_rolls_back_on_error(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(RuntimeError, match="boom"), SqlAlchemyTrackerUnitOfWork() as uow:
        uow.repositories.store_links.link("ctx-1", "gist-1", now=FIXED_NOW)
        raise RuntimeError("boom")

    with SqlAlchemyTrackerUnitOfWork() as uow:
        assert uow.repositories.store_links.get("ctx-1") is None
