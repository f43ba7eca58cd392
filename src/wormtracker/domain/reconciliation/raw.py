"""Pydantic models describing the embedded ``forge`` block payload."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

from pydantic import BaseModel, ConfigDict, field_validator


def _text_or_none(value: object) -> object:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return str(value)
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


def _objects_only(value: object) -> list[object]:
    if isinstance(value, Mapping):
        return [value]
    if isinstance(value, list):
        return [item for item in cast("list[object]", value) if isinstance(item, Mapping)]
    return []


def _mapping_or_empty(value: object) -> object:
    if isinstance(value, Mapping):
        return value
    return {}


class RawBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CharacterUpdatePayload(RawBaseModel):
    name: str | None = None
    relationship: str | None = None
    emotional_state: str | None = None
    physical_state: str | None = None
    learned: str | None = None

    _normalize_text = field_validator(
        "name",
        "relationship",
        "emotional_state",
        "physical_state",
        "learned",
        mode="before",
    )(_text_or_none)


class LegacyStateChangePayload(RawBaseModel):
    """Deprecated ``npc_state_change`` entry: ``{name, change|state}``."""

    name: str | None = None
    change: str | None = None
    state: str | None = None

    _normalize_text = field_validator("name", "change", "state", mode="before")(_text_or_none)

    def as_update(self) -> CharacterUpdatePayload:
        return CharacterUpdatePayload(name=self.name, emotional_state=self.change or self.state)


class EmbeddedBlock(RawBaseModel):
    npc_updates: list[CharacterUpdatePayload] = []
    npc_state_change: list[LegacyStateChangePayload] = []
    arc_event: Any = None
    world_state: dict[str, Any] = {}
    divergence_delta: Any = None
    in_world_date: str | None = None
    new_npcs: Any = None
    npc_knowledge: dict[str, Any] = {}
    npc_relationship: dict[str, Any] = {}
    npc_current_state: dict[str, Any] = {}
    npc_aliases: dict[str, Any] = {}

    _objects_only = field_validator("npc_updates", "npc_state_change", mode="before")(
        _objects_only
    )
    _mappings = field_validator(
        "world_state",
        "npc_knowledge",
        "npc_relationship",
        "npc_current_state",
        "npc_aliases",
        mode="before",
    )(_mapping_or_empty)
    _normalize_date = field_validator("in_world_date", mode="before")(_text_or_none)

    def character_updates(self) -> list[CharacterUpdatePayload]:
        """Current-format updates followed by converted legacy state changes."""

        updates = list(self.npc_updates)
        updates.extend(change.as_update() for change in self.npc_state_change if change.name)
        return updates
