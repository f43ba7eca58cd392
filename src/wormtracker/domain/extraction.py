"""Narrative cleanup and the extraction prompt sent to the oracle."""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wormtracker.domain.world import WorldModel

_REASONING_BLOCKS = (
    re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<thinking>.*?</thinking>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<thought>.*?</thought>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<council.*?</council>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<lumiaooc>.*?</lumiaooc>", re.IGNORECASE | re.DOTALL),
    # embedded blocks are decoded separately, before cleanup
    re.compile(r"```forge.*?```", re.IGNORECASE | re.DOTALL),
)

EXTRACTION_INSTRUCTIONS = """\
You are a state extraction assistant for a Worm (webserial) roleplay session. \
Read the narrative response below and compare it against the current tracked state. \
Identify ONLY concrete, confirmed changes: things that definitively happened in the text, \
not inferences or possibilities.

Return a single JSON object only. If nothing changed, return {}.

Categories to check:

npc_knowledge: Did any NPC learn something new?
  Format: { "npc_key": { "knowledge.field": newValue } }

npc_relationship: Did any NPC's relationship to the user character visibly shift?
  Format: { "npc_key": "new relationship description" }

npc_current_state: Physical or emotional state changes for any NPC.
  Format: { "npc_key": { "emotional_state": "...", "physical_state": "..." } }

arc_events: Did any tracked canon event fire, get altered, or get skipped?
  Format: { "event_id": "fired-canon" | "fired-altered" | "skipped" }

new_npcs: Were any new named characters introduced not yet in the tracker?
  Format: [{ "display_name": "", "alias": "", "aliases": [], "faction": "", "first_appeared": "" }]

npc_aliases: Did any NPC reveal, adopt, or lose a name or alias in this response?
  Format: { "npc_key": { "alias": "primary cape name", "aliases": ["all known names"] } }
  Only include if there is a concrete in-scene reason.

world_state: Any city-level changes (territorial shifts, public cape knowledge updates, \
new active situations)?
  Format: { "field_name": newValue }

divergence_delta: Integer: how many new butterfly effects were confirmed in this response? \
0 if none.

in_world_date: New date string if time has advanced in-scene, otherwise null.
"""


def strip_reasoning_blocks(text: str) -> str:
    """Drop model reasoning and embedded blocks so they never reach extraction."""

    for pattern in _REASONING_BLOCKS:
        text = pattern.sub("", text)
    return text.strip()


def merge_continuation(current: str, previous: str | None, *, is_continue: bool) -> str:
    """Join a continued message onto the text it continues."""

    if not is_continue or not previous:
        return current
    return f"{previous.strip()} {current.strip()}"


def state_summary(world: WorldModel) -> dict[str, object]:
    """Compact view of the tracked state handed to the oracle."""

    return {
        "world_state": world.world_state,
        "master_index": world.index,
        "arc_events": world.arc_events,
        "active_npcs": [
            {
                "key": key,
                "display_name": record.get("display_name"),
                "alias": record.get("alias"),
                "current_state": record.get("current_state"),
                "knowledge": record.get("knowledge"),
            }
            for key, record in world.characters()
        ],
    }


def build_extraction_prompt(response_text: str, summary: dict[str, object]) -> str:
    return (
        f"{EXTRACTION_INSTRUCTIONS}\n"
        f"CURRENT STATE SUMMARY:\n{json.dumps(summary, indent=2, default=str)}\n\n"
        f"NARRATIVE RESPONSE TO ANALYZE:\n{response_text}\n\n"
        "Return JSON only. No explanation. No markdown fences. No prose."
    )
