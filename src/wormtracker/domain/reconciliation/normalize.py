"""Normalization stage: raw change reports into the canonical delta.

Two decoders, each with its own entry point:
- ``parse_direct_report`` for JSON already keyed by canonical categories
- ``normalize_embedded_block`` for the compact ``forge`` block authored
  inside narrative text

A single call never mixes output of both decoders.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final, cast

from pydantic import ValidationError

from wormtracker.domain.world import EventStatus

from .delta import CanonicalDelta, coerce_divergence
from .raw import EmbeddedBlock
from .resolve import FuzzyNameResolver

if TYPE_CHECKING:
    from wormtracker.domain.world import WorldModel

    from .raw import CharacterUpdatePayload
    from .resolve import ReferenceResolver

log = logging.getLogger(__name__)

type Clock = Callable[[], datetime]

EVENT_ID_MAX_LENGTH: Final[int] = 40
EMBEDDED_STATUS: Final[str] = EventStatus.FIRED_CANON.value
LEARNED_FIELD_PREFIX: Final[str] = "knowledge.learned_"

_FENCE_MARKERS = re.compile(r"```(?:json)?", re.IGNORECASE)
_EMBEDDED_BLOCK = re.compile(r"```forge\s*(.*?)```", re.IGNORECASE | re.DOTALL)
_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def strip_code_fences(text: str) -> str:
    """Remove ```` ```json ```` / ```` ``` ```` markers and surrounding whitespace."""

    return _FENCE_MARKERS.sub("", text).strip()


def parse_direct_report(raw_text: str | None) -> CanonicalDelta | None:
    """Decode a direct JSON report into a canonical delta.

    Returns ``None`` when the text does not decode or decodes to anything
    other than a JSON object.
    """

    if not raw_text or not raw_text.strip():
        return None
    cleaned = strip_code_fences(raw_text)
    try:
        decoded: object = json.loads(cleaned)
    except json.JSONDecodeError:
        log.warning("Direct report did not decode: %.200s", raw_text)
        return None
    if not isinstance(decoded, Mapping):
        log.warning("Direct report is not a JSON object: %.200s", raw_text)
        return None
    return CanonicalDelta.from_mapping(cast("Mapping[str, object]", decoded))


def extract_embedded_block(raw_text: str | None) -> dict[str, object] | None:
    """Locate and decode the first ```` ```forge ```` block in ``raw_text``.

    Must run on the uncleaned text; reasoning-block cleanup removes these
    blocks.
    """

    if not raw_text:
        return None
    match = _EMBEDDED_BLOCK.search(raw_text)
    if match is None:
        return None
    body = match.group(1).strip()
    try:
        decoded: object = json.loads(body)
    except json.JSONDecodeError as exc:
        log.warning("Embedded block did not decode (%s): %.200s", exc.msg, body)
        return None
    if not isinstance(decoded, dict):
        log.warning("Embedded block is not a JSON object: %.200s", body)
        return None
    return cast("dict[str, object]", decoded)


def slugify_event(value: object, *, now: datetime) -> str:
    """Derive an arc event id from free text.

    Lowercased, runs of non-alphanumerics collapsed to ``_``, truncated to
    40 characters. Anything that leaves no slug becomes ``event_<millis>``.
    """

    if isinstance(value, str):
        # Edge underscores are trimmed so "Lung fight!" matches seeded "lung_fight".
        slug = _NON_ALNUM_RUN.sub("_", value.lower()).strip("_")
        slug = slug[:EVENT_ID_MAX_LENGTH].rstrip("_")
        if slug:
            return slug
    return f"event_{_epoch_millis(now)}"


def normalize_embedded_block(
    block: object,
    world: WorldModel,
    *,
    resolver: ReferenceResolver | None = None,
    clock: Clock | None = None,
) -> CanonicalDelta | None:
    """Translate an embedded block into a canonical delta.

    Character names in ``npc_updates`` (and deprecated ``npc_state_change``
    entries) are resolved against ``world``; unresolved entries are dropped.
    Returns ``None`` when ``block`` is not an object or fails validation.
    """

    if not isinstance(block, Mapping):
        log.warning("Embedded block is not an object: %r", block)
        return None
    try:
        parsed = EmbeddedBlock.model_validate(block)
    except ValidationError as exc:
        log.warning("Embedded block failed validation: %s", exc)
        return None

    now = (clock or _utc_now)()
    name_resolver = resolver or FuzzyNameResolver()

    world_fields = dict(parsed.world_state)
    nested_date = world_fields.pop("in_world_date", None)
    in_world_date = parsed.in_world_date or (
        nested_date if isinstance(nested_date, str) and nested_date.strip() else None
    )

    delta = CanonicalDelta.from_mapping(
        {
            "npc_knowledge": parsed.npc_knowledge,
            "npc_relationship": parsed.npc_relationship,
            "npc_current_state": parsed.npc_current_state,
            "npc_aliases": parsed.npc_aliases,
            "world_state": world_fields,
            "in_world_date": in_world_date,
            "new_npcs": parsed.new_npcs,
        }
    )
    delta.divergence_delta = coerce_divergence(parsed.divergence_delta)

    arc_event = parsed.arc_event
    if arc_event and arc_event != "null":
        delta.arc_events[slugify_event(arc_event, now=now)] = EMBEDDED_STATUS

    millis = _epoch_millis(now)
    for update in parsed.character_updates():
        _merge_character_update(delta, update, world, name_resolver, millis)
    return delta


def _merge_character_update(
    delta: CanonicalDelta,
    update: CharacterUpdatePayload,
    world: WorldModel,
    resolver: ReferenceResolver,
    millis: int,
) -> None:
    if not update.name:
        return
    key = resolver.resolve(update.name, world)
    if key is None:
        log.debug("Dropping update for unresolved character %r", update.name)
        return

    if update.relationship:
        delta.npc_relationship[key] = update.relationship
    state: dict[str, object] = {}
    if update.emotional_state:
        state["emotional_state"] = update.emotional_state
    if update.physical_state:
        state["physical_state"] = update.physical_state
    if state:
        delta.npc_current_state.setdefault(key, {}).update(state)
    if update.learned:
        knowledge = delta.npc_knowledge.setdefault(key, {})
        knowledge[_learned_field(knowledge, millis)] = update.learned


def _learned_field(existing: Mapping[str, object], millis: int) -> str:
    path = f"{LEARNED_FIELD_PREFIX}{millis}"
    suffix = 2
    candidate = path
    while candidate in existing:
        candidate = f"{path}_{suffix}"
        suffix += 1
    return candidate
