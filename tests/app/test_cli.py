from __future__ import annotations

import asyncio
import json
from pathlib import Path  # noqa: TC003

import pytest

from wormtracker.app import TrackerSession
from wormtracker.config import TrackerConfig
from wormtracker.domain.ports import MirrorSnapshot
from wormtracker.domain.world import WORLD_STATE_FILENAME, WorldModel
from wormtracker.ui import cli
from tests.helpers.fakes import FakeOracle, FakeStore, FakeUnitOfWorkFactory, StatusRecorder
from tests.helpers.worlds import FIXED_NOW, fixed_clock, make_character

DATE_BLOCK = 'Weeks passed.\n```forge\n{"in_world_date": "2011-04-12"}\n```'


@pytest.fixture
def session(
    monkeypatch: pytest.MonkeyPatch,
    uow_factory: FakeUnitOfWorkFactory,
    status: StatusRecorder,
    world: WorldModel,
) -> TrackerSession:
    uow_factory.mirrors.save(
        MirrorSnapshot(
            context_id="ctx-1",
            store_id=None,
            documents=world.snapshot().documents,
            saved_at=FIXED_NOW,
        )
    )
    tracker = TrackerSession(
        unit_of_work_factory=uow_factory,
        store=FakeStore(),
        oracle=FakeOracle(),
        config=TrackerConfig(push_delay_seconds=0.01),
        status=status,
        clock=fixed_clock(),
    )
    monkeypatch.setattr(cli, "build_session", lambda: tracker)
    return tracker


def _write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_scan_accept_all_applies_changes(session: TrackerSession, tmp_path: Path) -> None:
    message = _write(tmp_path, "message.txt", DATE_BLOCK)

    cli.main(["scan", str(message), "--context", "ctx-1", "--accept-all"])

    assert session.world.world_state["in_world_date"] == "2011-04-12"
    assert session.pending == ()


def test_review_pending_prompts_per_proposal(
    session: TrackerSession, capsys: pytest.CaptureFixture[str]
) -> None:
    block = '```forge\n{"in_world_date": "2011-04-12", "divergence_delta": 1}\n```'

    async def prepare() -> None:
        await session.switch_context("ctx-1")
        await session.handle_message(block)

    asyncio.run(prepare())
    answers = iter(["a", "d"])

    applied = cli.review_pending(session, accept_all=False, ask=lambda _prompt: next(answers))

    assert applied == 1
    assert session.pending == ()
    assert "Date: 2010-09-03 → 2011-04-12" in capsys.readouterr().out


def test_import_accept_all(session: TrackerSession, tmp_path: Path) -> None:
    brian = make_character("Brian Laborn", alias="Grue", power="Darkness generation")
    document = _write(tmp_path, "brian.json", json.dumps(brian))

    cli.main(["import", str(document), "--context", "ctx-1", "--accept-all"])

    assert session.world.has_character("npc_brian_laborn")


def test_add_character(session: TrackerSession) -> None:
    cli.main(
        [
            "add-character",
            "Amy Dallon",
            "--alias",
            "Panacea",
            "--known-as",
            "Amy",
            "--context",
            "ctx-1",
        ]
    )

    record = session.world.character("npc_amy_dallon")
    assert record is not None
    assert record["alias"] == "Panacea"
    assert "npc_amy_dallon" in session.world.index["active_npcs"]


def test_show_prints_injected_context(
    session: TrackerSession, capsys: pytest.CaptureFixture[str]
) -> None:
    cli.main(["show", "--context", "ctx-1"])

    assert "=== WORLD STATE ===" in capsys.readouterr().out
    assert session.world.is_loaded


def test_show_without_world(session: TrackerSession, capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["show", "--context", "ctx-empty"])

    assert "(nothing tracked yet)" in capsys.readouterr().out
    assert not session.world.is_loaded


def test_edit_replaces_document(session: TrackerSession, tmp_path: Path) -> None:
    replacement = _write(tmp_path, "state.json", json.dumps({"arc": "4"}))

    cli.main(["edit", WORLD_STATE_FILENAME, str(replacement), "--context", "ctx-1"])

    assert session.world.world_state == {"arc": "4"}


def test_edit_invalid_json_exits_with_usage_error(
    session: TrackerSession, tmp_path: Path
) -> None:
    replacement = _write(tmp_path, "state.json", "{arc")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["edit", WORLD_STATE_FILENAME, str(replacement), "--context", "ctx-1"])

    assert excinfo.value.code == 2
    assert session.world.world_state.get("arc") == "1"


def test_missing_input_file_exits_before_running(
    session: TrackerSession, tmp_path: Path
) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["scan", str(tmp_path / "missing.txt")])

    assert excinfo.value.code == 2
    assert session.context_id is None


def test_blank_character_name_is_rejected(session: TrackerSession) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["add-character", "   "])

    assert excinfo.value.code == 2
    assert session.context_id is None


def test_failed_push_exits_with_error(session: TrackerSession) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["push", "--context", "ctx-1"])

    assert excinfo.value.code == 1
    assert session.store_id is None
