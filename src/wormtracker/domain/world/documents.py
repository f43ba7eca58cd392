"""Document names, character keys and fresh-document templates."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import StrEnum
from typing import Final

INDEX_FILENAME: Final[str] = "_master_index.json"
WORLD_STATE_FILENAME: Final[str] = "world_state.json"
ARC_EVENTS_FILENAME: Final[str] = "arc_events.json"
DOCUMENT_SUFFIX: Final[str] = ".json"
CHARACTER_KEY_PREFIX: Final[str] = "npc_"

SCHEMA_VERSION: Final[str] = "1.0"
DEFAULT_SETTING: Final[str] = "Worm - Brockton Bay"
DEFAULT_IN_WORLD_DATE: Final[str] = "2010-09-03"
DEFAULT_ARC: Final[str] = "1"
DEFAULT_CHAPTER: Final[str] = "1.1"
DEFAULT_DIVERGENCE_THRESHOLD: Final[int] = 15
DEFAULT_RELATIONSHIP: Final[str] = "not yet met"

_WHITESPACE = re.compile(r"\s+")
_NON_KEY_CHARS = re.compile(r"[^a-z0-9_]")


class EventStatus(StrEnum):
    PENDING = "pending"
    FIRED_CANON = "fired-canon"
    FIRED_ALTERED = "fired-altered"
    SKIPPED = "skipped"


def character_key(display_name: str) -> str:
    """Derive the stable character key for ``display_name``.

    The name is lowercased, whitespace runs become ``_`` and anything outside
    ``[a-z0-9_]`` is dropped. The key never changes when the record is renamed.
    """

    slug = _WHITESPACE.sub("_", display_name.strip().lower())
    return CHARACTER_KEY_PREFIX + _NON_KEY_CHARS.sub("", slug)


def character_filename(key: str) -> str:
    return key + DOCUMENT_SUFFIX


def key_from_filename(filename: str) -> str:
    """Strip the document suffix; bare keys pass through unchanged."""

    if filename.endswith(DOCUMENT_SUFFIX):
        return filename[: -len(DOCUMENT_SUFFIX)]
    return filename


def is_character_filename(filename: str) -> bool:
    return filename.startswith(CHARACTER_KEY_PREFIX) and filename.endswith(DOCUMENT_SUFFIX)


def arc_key(arc: object) -> str:
    return f"arc_{arc}"


def default_index(context_id: str | None = None, *, now: datetime | None = None) -> dict[str, object]:
    timestamp = (now or datetime.now(UTC)).isoformat()
    return {
        "schema_version": SCHEMA_VERSION,
        "setting": DEFAULT_SETTING,
        "chat_id": context_id or "",
        "current_arc": DEFAULT_ARC,
        "current_chapter": DEFAULT_CHAPTER,
        "in_world_date": DEFAULT_IN_WORLD_DATE,
        "divergence_rating": 0,
        "divergence_threshold": DEFAULT_DIVERGENCE_THRESHOLD,
        "timeline_reliable": True,
        "active_npcs": [],
        "last_updated": timestamp,
        "notes": (
            "Divergence rating increments per confirmed butterfly. When rating hits threshold, "
            "timeline_reliable flips false and arc_events shifts to reference-only mode."
        ),
    }


def default_divergence() -> dict[str, object]:
    return {
        "rating": 0,
        "threshold": DEFAULT_DIVERGENCE_THRESHOLD,
        "timeline_reliable": True,
        "logged": [],
    }


def default_world_state() -> dict[str, object]:
    return {
        "in_world_date": DEFAULT_IN_WORLD_DATE,
        "arc": DEFAULT_ARC,
        "chapter": DEFAULT_CHAPTER,
        "territorial_control": {},
        "public_cape_knowledge": {},
        "active_situations": [],
        "divergence": default_divergence(),
    }


def default_arc_events() -> dict[str, object]:
    return {arc_key(DEFAULT_ARC): {}}


def scaffold_character(
    display_name: str,
    *,
    alias: str | None = None,
    aliases: list[str] | None = None,
    faction: str | None = None,
    first_appeared: str | None = None,
) -> dict[str, object]:
    """Return a blank character record with every sub-field present."""

    lorebook_key = _WHITESPACE.sub("_", display_name.upper())
    return {
        "display_name": display_name,
        "alias": alias or "",
        "aliases": list(aliases or []),
        "faction": faction or "Unknown",
        "classification": "",
        "first_appeared": first_appeared or "",
        "age": "",
        "physical_description": "",
        "power": {
            "summary": "",
            "mechanics": "",
            "current_limitations": [],
            "cannot_do": "",
        },
        "trigger_event": {"summary": "", "visibility_gate": "", "notes": ""},
        "personality": "",
        "history": "",
        "knowledge": {
            "specific_intel": [],
            "visibility_gates": {},
        },
        "current_state": {
            "relationship_to_user_character": DEFAULT_RELATIONSHIP,
            "emotional_state": "",
            "physical_state": "",
        },
        "lorebook_variable": f"%%NPC_{lorebook_key}%%",
    }


def default_documents(
    context_id: str | None = None, *, now: datetime | None = None
) -> dict[str, object]:
    """Documents a freshly created store starts with."""

    return {
        INDEX_FILENAME: default_index(context_id, now=now),
        WORLD_STATE_FILENAME: default_world_state(),
        ARC_EVENTS_FILENAME: default_arc_events(),
    }
