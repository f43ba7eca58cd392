from __future__ import annotations

from typing import TYPE_CHECKING

from wormtracker.domain.render import (
    build_context_injection,
    recent_text,
    render_arc_events,
    render_character,
    render_world_state,
    score_character,
    select_relevant_characters,
)
from tests.helpers.worlds import make_character, make_world, seeded_arc_events

if TYPE_CHECKING:
    from wormtracker.domain.world import WorldModel


def test_render_world_state_reports_divergence_and_situations() -> None:
    world = make_world()
    state = world.world_state
    state["active_situations"] = ["Lung is loose downtown"]
    state["faction_status"] = {"ABB": {"status": "weakened"}, "E88": "holding"}
    state["known_secrets"] = {"coil_is_calvert": True, "cauldron": "hidden"}
    state["divergence"] = {"rating": 16, "threshold": 15, "timeline_reliable": False}

    text = render_world_state(world)

    assert text.splitlines()[:3] == [
        "=== WORLD STATE ===",
        "Date: 2010-09-03  |  Arc 1 ch.1.1",
        "Divergence: 16/15  (TIMELINE UNRELIABLE: arc events are reference only)",
    ]
    assert "  • Lung is loose downtown" in text
    assert "  ABB: weakened" in text
    assert "  E88: holding" in text
    assert "PC currently knows:\n  • coil is calvert" in text
    assert "cauldron" not in text


def test_render_world_state_empty_without_date_or_arc() -> None:
    world = make_world()
    world.world_state.clear()

    assert render_world_state(world) == ""


def test_render_arc_events_lists_only_fired_events() -> None:
    events = seeded_arc_events("lung_fight", "bank_job")
    arc = events["arc_1"]
    assert isinstance(arc, dict)
    arc["lung_fight"]["player_status"] = "fired-altered"
    world = make_world(arc_events=events)

    assert render_arc_events(world) == (
        "=== ARC 1 EVENTS (FIRED) ===\n  [FIRED-ALTERED] lung fight: lung fight"
    )


def test_render_arc_events_empty_when_nothing_fired() -> None:
    world = make_world(arc_events=seeded_arc_events("lung_fight"))

    assert render_arc_events(world) == ""


def test_render_character_sections() -> None:
    record = make_character(
        "Lisa Wilbourn",
        alias="Tattletale",
        faction="Undersiders",
        power={"summary": "Thinker", "current_limitations": ["headaches"]},
        knowledge={
            "specific_intel": [{"fact": "Taylor is Skitter"}],
            "visibility_gates": {"coil_identity": False, "pc_name": True},
        },
        critical_note="Never lies outright",
    )

    text = render_character(record)

    assert text is not None
    lines = text.splitlines()
    assert lines[0] == '[NPC: LISA WILBOURN "Tattletale" | Undersiders | ]'
    assert "Power: Thinker" in lines
    assert "  Limitations: headaches" in lines
    assert "  → Relationship to PC: not yet met" in lines
    assert "  [KNOWS] Taylor is Skitter" in lines
    assert "  [DOES NOT KNOW] coil identity" in lines
    assert lines[-1] == "!! CRITICAL: Never lies outright"


def test_render_character_requires_name() -> None:
    assert render_character({"alias": "Nobody"}) is None


def test_score_character_weights() -> None:
    record = make_character(
        "Brian Laborn",
        alias="Grue",
        current_state={
            "relationship_to_user_character": "trusted ally",
            "physical_state": "present in the loft",
        },
    )

    assert score_character(record, "grue covered the exit") == 10 + 8 + 4
    assert score_character(record, "brian laughed") == 7 + 8 + 4
    assert score_character(record, "nobody here") == 8 + 4


def test_short_first_names_do_not_score() -> None:
    record = make_character("Amy Dallon")

    assert score_character(record, "amy was there") == 0


def test_select_relevant_characters_orders_and_caps(world: WorldModel) -> None:
    world.put("npc_brian_laborn.json", make_character("Brian Laborn", alias="Grue"))

    selected = select_relevant_characters(world, "Tattletale grinned at Grue and Grue", limit=2)

    assert [entry.key for entry in selected] == ["npc_lisa_wilbourn", "npc_brian_laborn"]
    assert select_relevant_characters(world, "", limit=8) == []


def test_recent_text_uses_last_messages() -> None:
    assert recent_text(["One", "Two", "Three", "Four"], 2) == "three four"
    assert recent_text(["One"], 0) == ""


def test_build_context_injection(world: WorldModel) -> None:
    injection = build_context_injection(world, "tattletale smirked")

    assert injection.world_block.startswith("=== WORLD STATE ===")
    assert injection.character_block.startswith("=== ACTIVE NPCs (1) ===")
    assert "[NPC: LISA WILBOURN" in injection.text()
