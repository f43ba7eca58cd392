"""Apply/merge engine: per-category mutation rules for the world model.

Rules:
- scalars and strings are last-write-wins
- ``current_state`` is shallow-merged; omitted sub-fields survive
- dot paths create missing intermediate mappings and overwrite the leaf
- arc events only change status on ids already seeded in the current arc
- divergence only grows; ``timeline_reliable`` is a one-way latch

Every function here is synchronous and touches nothing but the model.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, cast

from wormtracker.domain.world import (
    ARC_EVENTS_FILENAME,
    INDEX_FILENAME,
    WORLD_STATE_FILENAME,
    arc_key,
    as_document,
    character_filename,
    character_key,
    default_divergence,
    scaffold_character,
)
from wormtracker.domain.world.documents import DEFAULT_DIVERGENCE_THRESHOLD

if TYPE_CHECKING:
    from datetime import datetime

    from wormtracker.domain.world import Document, WorldModel

    from .delta import AliasChange, NewCharacter

log = logging.getLogger(__name__)

CURRENT_STATE_FIELD = "current_state"
RELATIONSHIP_FIELD = "relationship_to_user_character"


def deep_get(data: object, path: str) -> object:
    """Follow a dot-delimited ``path``; any missing segment yields ``None``."""

    current = data
    for segment in path.split("."):
        node = as_document(current)
        if node is None:
            return None
        current = node.get(segment)
    return current


def deep_set(data: Document, path: str, value: object) -> None:
    """Set ``value`` at a dot-delimited ``path``.

    Missing or non-mapping intermediates are replaced with empty mappings.
    """

    *parents, leaf = path.split(".")
    current = data
    for segment in parents:
        child = as_document(current.get(segment))
        if child is None:
            child = {}
            current[segment] = child
        current = child
    current[leaf] = value


def _character(world: WorldModel, key: str) -> Document:
    return world.character(key, create=True)


def _current_state(record: Document) -> Document:
    state = as_document(record.get(CURRENT_STATE_FIELD))
    if state is None:
        state = {}
        record[CURRENT_STATE_FIELD] = state
    return state


def set_character_field(world: WorldModel, key: str, path: str, value: object) -> None:
    deep_set(_character(world, key), path, value)


def set_relationship(world: WorldModel, key: str, relationship: str) -> None:
    _current_state(_character(world, key))[RELATIONSHIP_FIELD] = relationship


def merge_current_state(world: WorldModel, key: str, state: Mapping[str, object]) -> None:
    _current_state(_character(world, key)).update(state)


def update_aliases(world: WorldModel, key: str, change: AliasChange) -> None:
    record = _character(world, key)
    if change.alias:
        record["alias"] = change.alias
    if change.aliases is not None:
        record["aliases"] = list(change.aliases)


def set_arc_event_status(world: WorldModel, event_id: str, status: str) -> bool:
    """Overwrite ``player_status`` of a seeded event in the current arc.

    Unknown ids leave the ledger untouched; no arc bucket is created.
    """

    ledger = as_document(world.get(ARC_EVENTS_FILENAME))
    arc = as_document(ledger.get(arc_key(world.current_arc()))) if ledger else None
    event = as_document(arc.get(event_id)) if arc else None
    if event is None:
        log.debug("Ignoring status %r for unseeded arc event %r", status, event_id)
        return False
    event["player_status"] = status
    return True


def set_world_field(world: WorldModel, name: str, value: object) -> None:
    world.document(WORLD_STATE_FILENAME, create=True)[name] = value


def _as_int(value: object, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return default


def add_divergence(world: WorldModel, amount: int, *, now: datetime) -> None:
    """Add ``amount`` to the divergence rating and log it.

    Non-positive amounts are ignored. Once the rating reaches the threshold
    ``timeline_reliable`` becomes false and is never set back here.
    """

    if amount <= 0:
        return
    state = world.document(WORLD_STATE_FILENAME, create=True)
    record = as_document(state.get("divergence"))
    if record is None:
        record = default_divergence()
        state["divergence"] = record

    rating = _as_int(record.get("rating"), 0) + amount
    threshold = _as_int(record.get("threshold"), DEFAULT_DIVERGENCE_THRESHOLD)
    record["rating"] = rating
    logged = record.get("logged")
    if not isinstance(logged, list):
        logged = []
        record["logged"] = logged
    cast("list[object]", logged).append({"timestamp": now.isoformat(), "delta": amount})
    if rating >= threshold:
        record["timeline_reliable"] = False

    index = as_document(world.get(INDEX_FILENAME))
    if index is not None:
        index["divergence_rating"] = rating
        index["timeline_reliable"] = record.get("timeline_reliable", True)


def set_in_world_date(world: WorldModel, date: str) -> None:
    set_world_field(world, "in_world_date", date)
    index = as_document(world.get(INDEX_FILENAME))
    if index is not None:
        index["in_world_date"] = date


def create_character(world: WorldModel, new: NewCharacter) -> bool:
    """Scaffold a record for ``new`` unless its key already exists."""

    key = character_key(new.display_name)
    if world.character(key) is not None:
        log.debug("Character %s already exists; not scaffolding", key)
        return False
    world.put(
        character_filename(key),
        scaffold_character(
            new.display_name,
            alias=new.alias,
            aliases=new.aliases,
            faction=new.faction,
            first_appeared=new.first_appeared,
        ),
    )
    register_active_character(world, key)
    return True


def register_active_character(world: WorldModel, key: str) -> None:
    index = as_document(world.get(INDEX_FILENAME))
    if index is None:
        return
    active = index.get("active_npcs")
    if not isinstance(active, list):
        active = []
        index["active_npcs"] = active
    members = cast("list[object]", active)
    if key not in members:
        members.append(key)


def replace_document(world: WorldModel, filename: str, data: object) -> None:
    world.put(filename, data)
