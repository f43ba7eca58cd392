"""Proposal expansion: one canonical delta into atomic leaf proposals.

Categories are emitted in a fixed order and every description is a pure
function of the delta and the world snapshot it was expanded against. The
wall clock is only read when a divergence proposal is applied.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from functools import partial
from typing import TYPE_CHECKING, cast

from wormtracker.domain.world import CHARACTER_KEY_PREFIX, arc_key, as_document, character_key

from . import merge
from .proposals import Proposal, ProposalCategory

if TYPE_CHECKING:
    from collections.abc import Callable

    from wormtracker.domain.world import WorldModel

    from .delta import AliasChange, CanonicalDelta, NewCharacter
    from .proposals import ApplyChange

log = logging.getLogger(__name__)

PREVIEW_LENGTH = 80


def _utc_now() -> datetime:
    return datetime.now(UTC)


def expand_delta(
    delta: CanonicalDelta,
    world: WorldModel,
    *,
    context_id: str | None = None,
    clock: Callable[[], datetime] | None = None,
) -> list[Proposal]:
    """Return one proposal per leaf change in ``delta``.

    Order: knowledge, relationship, current state, aliases, arc events,
    world state, divergence, date, new characters.
    """

    expander = _Expander(world=world, context_id=context_id, clock=clock or _utc_now)
    expander.knowledge(delta.npc_knowledge)
    expander.relationships(delta.npc_relationship)
    expander.current_states(delta.npc_current_state)
    expander.aliases(delta.npc_aliases)
    expander.arc_events(delta.arc_events)
    expander.world_fields(delta.world_state)
    expander.divergence(delta.divergence_delta)
    expander.date(delta.in_world_date)
    expander.new_characters(delta.new_npcs)
    return expander.proposals


def display_name_for(key: str, world: WorldModel) -> str:
    """Display name of ``key``, or a readable form of the key itself."""

    record = world.character(key)
    name = record.get("display_name") if record is not None else None
    if isinstance(name, str) and name.strip():
        return name
    bare = key.removeprefix(CHARACTER_KEY_PREFIX)
    return bare.replace("_", " ")


def preview_value(value: object) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)[:PREVIEW_LENGTH]


class _Expander:
    __slots__ = ("clock", "context_id", "proposals", "world")

    def __init__(
        self, *, world: WorldModel, context_id: str | None, clock: Callable[[], datetime]
    ) -> None:
        self.world = world
        self.context_id = context_id
        self.clock = clock
        self.proposals: list[Proposal] = []

    def _emit(
        self,
        category: ProposalCategory,
        description: str,
        apply_change: ApplyChange,
        *,
        target_key: str | None = None,
        old_value: object = None,
        new_value: object = None,
    ) -> None:
        self.proposals.append(
            Proposal(
                category=category,
                description=description,
                apply_change=apply_change,
                target_key=target_key,
                old_value=old_value,
                new_value=new_value,
                context_id=self.context_id,
            )
        )

    def knowledge(self, changes: dict[str, dict[str, object]]) -> None:
        for key, fields in changes.items():
            name = display_name_for(key, self.world)
            record = self.world.character(key)
            for path, value in fields.items():
                self._emit(
                    ProposalCategory.NPC_KNOWLEDGE,
                    f"{name}: knowledge: {path.replace('.', ' → ')} → {preview_value(value)}",
                    partial(merge.set_character_field, key=key, path=path, value=value),
                    target_key=key,
                    old_value=merge.deep_get(record, path),
                    new_value=value,
                )

    def relationships(self, changes: dict[str, str]) -> None:
        for key, relationship in changes.items():
            name = display_name_for(key, self.world)
            old = merge.deep_get(
                self.world.character(key),
                f"{merge.CURRENT_STATE_FIELD}.{merge.RELATIONSHIP_FIELD}",
            )
            suffix = f" (was: {old})" if old else ""
            self._emit(
                ProposalCategory.NPC_RELATIONSHIP,
                f"{name}: relationship → {relationship}{suffix}",
                partial(merge.set_relationship, key=key, relationship=relationship),
                target_key=key,
                old_value=old,
                new_value=relationship,
            )

    def current_states(self, changes: dict[str, dict[str, object]]) -> None:
        for key, state in changes.items():
            name = display_name_for(key, self.world)
            summary = "; ".join(f"{field}: {value}" for field, value in state.items())
            old = merge.deep_get(self.world.character(key), merge.CURRENT_STATE_FIELD)
            self._emit(
                ProposalCategory.NPC_CURRENT_STATE,
                f"{name}: state: {summary}",
                partial(merge.merge_current_state, key=key, state=dict(state)),
                target_key=key,
                old_value=dict(cast("dict[str, object]", old)) if isinstance(old, dict) else old,
                new_value=dict(state),
            )

    def aliases(self, changes: dict[str, AliasChange]) -> None:
        for key, change in changes.items():
            record = self.world.character(key)
            old_alias = record.get("alias") if record is not None else None
            old_aliases = record.get("aliases") if record is not None else None
            current_aliases = (
                [str(item) for item in cast("list[object]", old_aliases)]
                if isinstance(old_aliases, list)
                else []
            )

            parts: list[str] = []
            if change.alias and change.alias != old_alias:
                parts.append(f"primary name: {old_alias or '?'} → {change.alias}")
            if change.aliases is not None and change.aliases != current_aliases:
                parts.append(
                    f"known names: [{', '.join(current_aliases)}] → [{', '.join(change.aliases)}]"
                )
            if not parts:
                log.debug("Suppressing alias proposal for %s: nothing changes", key)
                continue

            self._emit(
                ProposalCategory.NPC_ALIASES,
                f"{display_name_for(key, self.world)}: alias update: {'; '.join(parts)}",
                partial(merge.update_aliases, key=key, change=change),
                target_key=key,
                old_value={"alias": old_alias, "aliases": old_aliases},
                new_value=change.to_dict(),
            )

    def arc_events(self, changes: dict[str, str]) -> None:
        ledger = as_document(self.world.arc_events.get(arc_key(self.world.current_arc()))) or {}
        for event_id, status in changes.items():
            event = as_document(ledger.get(event_id))
            old = event.get("player_status") if event is not None else None
            self._emit(
                ProposalCategory.ARC_EVENT,
                f'Arc event: "{event_id.replace("_", " ")}" → {status}',
                partial(merge.set_arc_event_status, event_id=event_id, status=status),
                old_value=old,
                new_value=status,
            )

    def world_fields(self, changes: dict[str, object]) -> None:
        for name, value in changes.items():
            self._emit(
                ProposalCategory.WORLD_STATE,
                f"World state: {name} → {preview_value(value)}",
                partial(merge.set_world_field, name=name, value=value),
                old_value=self.world.world_state.get(name),
                new_value=value,
            )

    def divergence(self, amount: int) -> None:
        if amount <= 0:
            return
        current = merge.deep_get(self.world.world_state, "divergence.rating")
        rating = current if isinstance(current, int) and not isinstance(current, bool) else 0
        clock = self.clock

        def apply_change(world: WorldModel) -> None:
            merge.add_divergence(world, amount, now=clock())

        self._emit(
            ProposalCategory.DIVERGENCE,
            f"Divergence +{amount} ({rating} → {rating + amount})",
            apply_change,
            old_value=rating,
            new_value=rating + amount,
        )

    def date(self, in_world_date: str | None) -> None:
        if not in_world_date:
            return
        old = self.world.world_state.get("in_world_date")
        self._emit(
            ProposalCategory.IN_WORLD_DATE,
            f"Date: {old or '?'} → {in_world_date}",
            partial(merge.set_in_world_date, date=in_world_date),
            old_value=old,
            new_value=in_world_date,
        )

    def new_characters(self, entries: list[NewCharacter]) -> None:
        seen: set[str] = set()
        for entry in entries:
            key = character_key(entry.display_name)
            if key in seen or self.world.character(key) is not None:
                log.debug("Skipping new character %s: already known", key)
                continue
            seen.add(key)
            alias = f" ({entry.alias})" if entry.alias else ""
            self._emit(
                ProposalCategory.NEW_NPC,
                f"New NPC: {entry.display_name}{alias}: {entry.faction or 'unknown faction'}",
                partial(merge.create_character, new=entry),
                target_key=key,
                new_value=entry.to_dict(),
            )
