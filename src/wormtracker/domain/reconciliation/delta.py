"""Canonical delta: the single normalized change-report schema.

Every category is optional; an empty container (or zero/``None`` scalar)
means "no change in that category". ``from_mapping`` is the only place raw,
duck-typed JSON is coerced into this shape; downstream stages trust it.
"""

# pyright: reportUnknownVariableType=false

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import cast

from wormtracker.domain.world import EventStatus, key_from_filename

log = logging.getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class AliasChange:
    alias: str | None = None
    aliases: list[str] | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {}
        if self.alias is not None:
            data["alias"] = self.alias
        if self.aliases is not None:
            data["aliases"] = list(self.aliases)
        return data


@dataclass(slots=True, kw_only=True)
class NewCharacter:
    display_name: str
    alias: str | None = None
    aliases: list[str] = field(default_factory=list)
    faction: str | None = None
    first_appeared: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"display_name": self.display_name}
        if self.alias:
            data["alias"] = self.alias
        if self.aliases:
            data["aliases"] = list(self.aliases)
        if self.faction:
            data["faction"] = self.faction
        if self.first_appeared:
            data["first_appeared"] = self.first_appeared
        return data


@dataclass(slots=True, kw_only=True)
class CanonicalDelta:
    npc_knowledge: dict[str, dict[str, object]] = field(default_factory=dict)
    npc_relationship: dict[str, str] = field(default_factory=dict)
    npc_current_state: dict[str, dict[str, object]] = field(default_factory=dict)
    npc_aliases: dict[str, AliasChange] = field(default_factory=dict)
    arc_events: dict[str, str] = field(default_factory=dict)
    world_state: dict[str, object] = field(default_factory=dict)
    divergence_delta: int = 0
    in_world_date: str | None = None
    new_npcs: list[NewCharacter] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.to_dict()

    def to_dict(self) -> dict[str, object]:
        """Wire form: only populated categories are emitted."""

        data: dict[str, object] = {}
        knowledge = {key: dict(fields) for key, fields in self.npc_knowledge.items() if fields}
        if knowledge:
            data["npc_knowledge"] = knowledge
        if self.npc_relationship:
            data["npc_relationship"] = dict(self.npc_relationship)
        states = {key: dict(state) for key, state in self.npc_current_state.items() if state}
        if states:
            data["npc_current_state"] = states
        aliases = {
            key: change.to_dict() for key, change in self.npc_aliases.items() if change.to_dict()
        }
        if aliases:
            data["npc_aliases"] = aliases
        if self.arc_events:
            data["arc_events"] = dict(self.arc_events)
        if self.world_state:
            data["world_state"] = dict(self.world_state)
        if self.divergence_delta > 0:
            data["divergence_delta"] = self.divergence_delta
        if self.in_world_date:
            data["in_world_date"] = self.in_world_date
        if self.new_npcs:
            data["new_npcs"] = [npc.to_dict() for npc in self.new_npcs]
        return data

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object]) -> CanonicalDelta:
        """Coerce a decoded direct report into a canonical delta.

        Entries with the wrong shape are dropped one by one; a malformed
        category never invalidates the rest of the report.
        """

        return cls(
            npc_knowledge=_nested_mapping(raw.get("npc_knowledge"), "npc_knowledge"),
            npc_relationship=_text_by_key(raw.get("npc_relationship"), "npc_relationship"),
            npc_current_state=_nested_mapping(raw.get("npc_current_state"), "npc_current_state"),
            npc_aliases=_alias_changes(raw.get("npc_aliases")),
            arc_events=_arc_statuses(raw.get("arc_events")),
            world_state=_string_keyed(raw.get("world_state")),
            divergence_delta=coerce_divergence(raw.get("divergence_delta")),
            in_world_date=_text_or_none(raw.get("in_world_date")),
            new_npcs=_new_characters(raw.get("new_npcs")),
        )


def delta_is_empty(delta: CanonicalDelta | Mapping[str, object] | None) -> bool:
    """Return whether ``delta`` carries no change at all.

    Raw mappings count as empty when every value is ``None``, zero, an empty
    string, an empty list or an empty mapping.
    """

    if delta is None:
        return True
    if isinstance(delta, CanonicalDelta):
        return delta.is_empty()
    return all(_is_blank(value) for value in delta.values())


def _is_blank(value: object) -> bool:
    if value is None or value == "":
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, int | float) and value == 0:
        return True
    if isinstance(value, list | tuple | Mapping):
        return len(cast("list[object] | tuple[object, ...] | Mapping[object, object]", value)) == 0
    return False


def coerce_divergence(value: object) -> int:
    """Return a non-negative integer divergence delta.

    Anything unreadable, non-finite or too large for a float is zero.
    """

    if isinstance(value, bool) or value is None:
        return 0
    try:
        number = float(cast("str | int | float", value))
    except (TypeError, ValueError, OverflowError):
        log.debug("Ignoring non-numeric divergence_delta=%r", value)
        return 0
    if not math.isfinite(number):
        log.debug("Ignoring non-finite divergence_delta=%r", value)
        return 0
    return max(int(number), 0)


def _string_keyed(value: object) -> dict[str, object]:
    if not isinstance(value, Mapping):
        return {}
    mapping = cast("Mapping[object, object]", value)
    return {str(key): item for key, item in mapping.items()}


def _nested_mapping(value: object, category: str) -> dict[str, dict[str, object]]:
    result: dict[str, dict[str, object]] = {}
    for key, fields in _string_keyed(value).items():
        if not isinstance(fields, Mapping):
            log.debug("Dropping %s entry for %s: expected an object", category, key)
            continue
        entries = _string_keyed(fields)
        if entries:
            result.setdefault(key_from_filename(key), {}).update(entries)
    return result


def _text_by_key(value: object, category: str) -> dict[str, str]:
    result: dict[str, str] = {}
    for key, text in _string_keyed(value).items():
        if not isinstance(text, str) or not text.strip():
            log.debug("Dropping %s entry for %s: expected text", category, key)
            continue
        result[key_from_filename(key)] = text
    return result


def _alias_changes(value: object) -> dict[str, AliasChange]:
    result: dict[str, AliasChange] = {}
    for key, change in _string_keyed(value).items():
        if not isinstance(change, Mapping):
            continue
        entries = _string_keyed(change)
        alias = _text_or_none(entries.get("alias"))
        aliases = _text_list(entries.get("aliases"))
        if alias is None and aliases is None:
            continue
        result[key_from_filename(key)] = AliasChange(alias=alias, aliases=aliases)
    return result


def _arc_statuses(value: object) -> dict[str, str]:
    known = {status.value for status in EventStatus}
    result: dict[str, str] = {}
    for event_id, status in _string_keyed(value).items():
        text = status.strip().lower() if isinstance(status, str) else ""
        if text not in known:
            log.debug("Dropping arc_events entry for %s: unknown status %r", event_id, status)
            continue
        result[event_id] = text
    return result


def _text_or_none(value: object) -> str | None:
    if isinstance(value, str) and value.strip() and value.strip().lower() != "null":
        return value
    return None


def _text_list(value: object) -> list[str] | None:
    if not isinstance(value, list):
        return None
    items = cast("list[object]", value)
    return [item for item in items if isinstance(item, str) and item.strip()]


def _new_characters(value: object) -> list[NewCharacter]:
    if not isinstance(value, list):
        return []
    characters: list[NewCharacter] = []
    for entry in cast("list[object]", value):
        if not isinstance(entry, Mapping):
            continue
        fields = _string_keyed(entry)
        display_name = _text_or_none(fields.get("display_name"))
        if display_name is None:
            log.debug("Dropping new_npcs entry without display_name: %r", entry)
            continue
        characters.append(
            NewCharacter(
                display_name=display_name.strip(),
                alias=_text_or_none(fields.get("alias")),
                aliases=_text_list(fields.get("aliases")) or [],
                faction=_text_or_none(fields.get("faction")),
                first_appeared=_text_or_none(fields.get("first_appeared")),
            )
        )
    return characters
