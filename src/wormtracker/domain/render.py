"""Prompt-ready text rendering of the world model."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, cast

from wormtracker.domain.world import arc_key, as_document
from wormtracker.domain.world.documents import DEFAULT_ARC, DEFAULT_DIVERGENCE_THRESHOLD

if TYPE_CHECKING:
    from collections.abc import Sequence

    from wormtracker.domain.world import Document, WorldModel

DEFAULT_CHARACTER_LIMIT: Final[int] = 8

NAME_MENTION_SCORE: Final[int] = 10
FIRST_NAME_MENTION_SCORE: Final[int] = 7
PRESENT_IN_SCENE_SCORE: Final[int] = 8
HOSTILE_SCORE: Final[int] = 5
TRUSTED_SCORE: Final[int] = 4
ROMANTIC_SCORE: Final[int] = 6
HAS_INTEL_SCORE: Final[int] = 1

_PRESENT = re.compile(r"present|scene|with pc|same room")
_HOSTILE = re.compile(r"hostile|enemy|threat")
_TRUSTED = re.compile(r"trusted|loyal|ally")
_ROMANTIC = re.compile(r"romantic|love|crush")


def _list(value: object) -> list[object]:
    return cast("list[object]", value) if isinstance(value, list) else []


def _inline(value: object) -> str:
    return value if isinstance(value, str) else json.dumps(value, default=str)


def render_world_state(world: WorldModel) -> str:
    state = world.world_state
    if not state.get("in_world_date") and not state.get("arc"):
        return ""

    chapter = f" ch.{state['chapter']}" if state.get("chapter") else ""
    lines = [
        "=== WORLD STATE ===",
        f"Date: {state.get('in_world_date') or '?'}  |  Arc {state.get('arc') or '?'}{chapter}",
    ]

    divergence = as_document(state.get("divergence")) or {}
    if "rating" in divergence:
        warning = (
            ""
            if divergence.get("timeline_reliable")
            else "  (TIMELINE UNRELIABLE: arc events are reference only)"
        )
        threshold = divergence.get("threshold") or DEFAULT_DIVERGENCE_THRESHOLD
        lines.append(f"Divergence: {divergence['rating']}/{threshold}{warning}")

    situations = _list(state.get("active_situations"))
    if situations:
        lines.extend(["", "Active situations:"])
        lines.extend(f"  • {_inline(situation)}" for situation in situations)

    factions = as_document(state.get("faction_status")) or as_document(
        state.get("territorial_control")
    )
    if factions:
        lines.extend(["", "Faction status:"])
        for name, status in factions.items():
            entry = as_document(status)
            text = (entry.get("status") or _inline(entry)) if entry is not None else status
            lines.append(f"  {name}: {text}")

    secrets = as_document(state.get("known_secrets")) or {}
    truths = [
        name
        for name, value in secrets.items()
        if value is True or (isinstance(value, str) and "know" in value.lower())
    ]
    if truths:
        lines.extend(["", "PC currently knows:"])
        lines.extend(f"  • {name.replace('_', ' ')}" for name in truths)

    return "\n".join(lines)


def render_arc_events(world: WorldModel) -> str:
    """Fired events of the current arc; pending events are left out."""

    arc = world.world_state.get("arc") or DEFAULT_ARC
    events = as_document(world.arc_events.get(arc_key(arc)))
    if events is None:
        return ""

    fired: list[str] = []
    for event_id, raw in events.items():
        event = as_document(raw)
        if event is None:
            continue
        status = event.get("player_status")
        if not isinstance(status, str) or not status or status == "pending":
            continue
        summary = event.get("summary") or ""
        fired.append(f"  [{status.upper()}] {event_id.replace('_', ' ')}: {summary}")
    if not fired:
        return ""
    return f"=== ARC {arc} EVENTS (FIRED) ===\n" + "\n".join(fired)


def render_character(record: Document) -> str | None:
    name = record.get("display_name")
    if not isinstance(name, str) or not name:
        return None

    alias = f' "{record["alias"]}"' if record.get("alias") else ""
    faction = record.get("faction") or "Unknown"
    classification = record.get("classification") or ""
    lines = [f"[NPC: {name.upper()}{alias} | {faction} | {classification}]"]

    if record.get("physical_description"):
        lines.append(f"Physical: {record['physical_description']}")

    power = as_document(record.get("power"))
    if power is not None:
        if power.get("summary"):
            lines.append(f"Power: {power['summary']}")
        limitations = _list(power.get("current_limitations"))
        if limitations:
            lines.append(f"  Limitations: {'; '.join(map(str, limitations))}")
        vulnerabilities = power.get("vulnerabilities")
        if vulnerabilities:
            items = _list(vulnerabilities) or [vulnerabilities]
            lines.append(f"  Vulnerabilities: {'; '.join(map(str, items))}")
        if power.get("cannot_do"):
            lines.append(f"  Cannot: {power['cannot_do']}")

    if record.get("personality"):
        lines.append(f"Personality: {record['personality']}")

    state = as_document(record.get("current_state")) or {}
    lines.append("Current:")
    if state.get("relationship_to_user_character"):
        lines.append(f"  → Relationship to PC: {state['relationship_to_user_character']}")
    if state.get("emotional_state"):
        lines.append(f"  → Emotional: {state['emotional_state']}")
    if state.get("physical_state"):
        lines.append(f"  → Physical: {state['physical_state']}")

    knowledge = as_document(record.get("knowledge")) or {}
    intel = [item for item in _list(knowledge.get("specific_intel")) if item]
    gates = as_document(knowledge.get("visibility_gates")) or {}
    hidden = [key for key, value in gates.items() if value is False or value == "hidden"]
    if intel or hidden:
        lines.append("Knowledge:")
        for item in intel:
            fact = as_document(item)
            lines.append(f"  [KNOWS] {fact.get('fact') if fact is not None else item}")
        lines.extend(f"  [DOES NOT KNOW] {key.replace('_', ' ')}" for key in hidden)

    if record.get("critical_note"):
        lines.append(f"!! CRITICAL: {record['critical_note']}")

    return "\n".join(lines)


def score_character(record: Document, recent_text: str) -> int:
    """Relevance of a character to the lowercased ``recent_text``."""

    score = 0
    names = [record.get("display_name"), record.get("alias"), *_list(record.get("aliases"))]
    for name in names:
        if not isinstance(name, str) or not name:
            continue
        if name.lower() in recent_text:
            score += NAME_MENTION_SCORE
            break
        parts = name.split()
        first = parts[0].lower() if parts else ""
        if len(first) > 3 and first in recent_text:
            score += FIRST_NAME_MENTION_SCORE
            break

    state = as_document(record.get("current_state")) or {}
    physical = str(state.get("physical_state") or "").lower()
    if _PRESENT.search(physical):
        score += PRESENT_IN_SCENE_SCORE

    relationship = str(state.get("relationship_to_user_character") or "").lower()
    if _HOSTILE.search(relationship):
        score += HOSTILE_SCORE
    if _TRUSTED.search(relationship):
        score += TRUSTED_SCORE
    if _ROMANTIC.search(relationship):
        score += ROMANTIC_SCORE

    knowledge = as_document(record.get("knowledge")) or {}
    if _list(knowledge.get("specific_intel")):
        score += HAS_INTEL_SCORE
    return score


@dataclass(slots=True, frozen=True)
class ScoredCharacter:
    key: str
    record: Document
    score: int


def select_relevant_characters(
    world: WorldModel, recent_text: str, limit: int = DEFAULT_CHARACTER_LIMIT
) -> list[ScoredCharacter]:
    """Positively scored characters, highest first, at most ``limit``."""

    text = recent_text.lower()
    scored = [
        ScoredCharacter(key=key, record=record, score=score_character(record, text))
        for key, record in world.characters()
    ]
    relevant = sorted(
        (entry for entry in scored if entry.score > 0), key=lambda entry: -entry.score
    )
    return relevant[:limit]


def recent_text(messages: Sequence[str], depth: int) -> str:
    return " ".join(messages[-depth:]).lower() if depth > 0 else ""


def render_characters(selected: Sequence[ScoredCharacter]) -> str:
    rendered = [text for entry in selected if (text := render_character(entry.record))]
    if not selected:
        return ""
    return f"=== ACTIVE NPCs ({len(selected)}) ===\n" + "\n\n".join(rendered)


@dataclass(slots=True, frozen=True)
class ContextInjection:
    world_block: str
    character_block: str

    def text(self) -> str:
        return "\n\n".join(block for block in (self.world_block, self.character_block) if block)


def build_context_injection(
    world: WorldModel, recent: str, *, limit: int = DEFAULT_CHARACTER_LIMIT
) -> ContextInjection:
    world_block = "\n\n".join(
        block for block in (render_world_state(world), render_arc_events(world)) if block
    )
    return ContextInjection(
        world_block=world_block,
        character_block=render_characters(select_relevant_characters(world, recent, limit)),
    )
