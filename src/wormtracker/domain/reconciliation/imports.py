"""Whole-file import proposals.

Each imported JSON file becomes a single proposal that replaces (or
creates) one document. The document kind decides the target filename, the
description and the preview shown when the proposal is expanded.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import StrEnum
from functools import partial
from pathlib import PurePath
from typing import TYPE_CHECKING, cast

from wormtracker.domain.world import (
    ARC_EVENTS_FILENAME,
    INDEX_FILENAME,
    WORLD_STATE_FILENAME,
    as_document,
    character_filename,
    character_key,
)

from . import merge
from .proposals import Proposal, ProposalCategory

if TYPE_CHECKING:
    from collections.abc import Iterable

    from wormtracker.domain.world import Document, WorldModel

log = logging.getLogger(__name__)

_ARC_KEY = re.compile(r"^arc_\d+")
_PREVIEW_UNKNOWN_LENGTH = 400


class DocumentKind(StrEnum):
    CHARACTER = "character"
    WORLD_STATE = "world_state"
    ARC_EVENTS = "arc_events"
    MASTER_INDEX = "master_index"
    UNKNOWN = "unknown"


@dataclass(slots=True, frozen=True)
class ImportFailure:
    source_name: str
    reason: str


@dataclass(slots=True)
class ImportResult:
    proposals: list[Proposal]
    failures: list[ImportFailure]


def detect_kind(data: object) -> DocumentKind:
    document = as_document(data)
    if document is None:
        return DocumentKind.UNKNOWN
    if document.get("display_name") and document.get("power"):
        return DocumentKind.CHARACTER
    if (
        document.get("active_situations")
        or document.get("faction_status")
        or (document.get("in_world_date") and document.get("arc"))
    ):
        return DocumentKind.WORLD_STATE
    if any(_ARC_KEY.match(key) for key in document):
        return DocumentKind.ARC_EVENTS
    if "current_arc" in document and document.get("active_npcs"):
        return DocumentKind.MASTER_INDEX
    if document.get("schema_version") and document.get("setting"):
        return DocumentKind.MASTER_INDEX
    return DocumentKind.UNKNOWN


def target_filename(data: object, source_name: str) -> str:
    """Store filename an imported document lands under."""

    match detect_kind(data):
        case DocumentKind.CHARACTER:
            return character_filename(character_key(str(cast("Document", data)["display_name"])))
        case DocumentKind.WORLD_STATE:
            return WORLD_STATE_FILENAME
        case DocumentKind.ARC_EVENTS:
            return ARC_EVENTS_FILENAME
        case DocumentKind.MASTER_INDEX:
            return INDEX_FILENAME
        case DocumentKind.UNKNOWN:
            return PurePath(source_name.replace("\\", "/")).name


def _text(value: object, fallback: str = "-") -> str:
    if value is None or value == "":
        return fallback
    return str(value)


def _clip(value: object, limit: int) -> str:
    text = str(value)
    return text[:limit] + ("…" if len(text) > limit else "")


def _arc_keys(document: Document) -> list[str]:
    return [key for key in document if key.startswith("arc_")]


def build_preview(data: object, kind: DocumentKind) -> str:
    """Human-readable summary used by the expand toggle."""

    document = as_document(data)
    if document is None:
        return json.dumps(data, indent=2, default=str)[:_PREVIEW_UNKNOWN_LENGTH]

    lines: list[str] = []
    if kind is DocumentKind.CHARACTER:
        alias = f" / {document['alias']}" if document.get("alias") else ""
        lines.append(f"Name:           {document.get('display_name')}{alias}")
        lines.append(f"Faction:        {_text(document.get('faction'))}")
        lines.append(f"Classification: {_text(document.get('classification'))}")
        if document.get("age"):
            lines.append(f"Age:            {document['age']}")
        power_summary = merge.deep_get(document, "power.summary")
        if power_summary:
            lines.append(f"Power:          {power_summary}")
        if document.get("personality"):
            lines.append(f"Personality:    {_clip(document['personality'], 150)}")
        if document.get("critical_note"):
            lines.append(f"!! CRITICAL:    {document['critical_note']}")
        relationship = merge.deep_get(document, "current_state.relationship_to_user_character")
        if relationship:
            lines.append(f"Relationship:   {relationship}")
        trigger = merge.deep_get(document, "trigger_event.summary")
        if trigger:
            lines.append(f"Trigger:        {str(trigger)[:120]}")
    elif kind is DocumentKind.WORLD_STATE:
        chapter = f" ch.{document['chapter']}" if document.get("chapter") else ""
        lines.append(f"Date:  {_text(document.get('in_world_date'))}")
        lines.append(f"Arc:   {_text(document.get('arc'))}{chapter}")
        divergence = as_document(document.get("divergence"))
        if divergence is not None:
            lines.append(f"Div:   {divergence.get('rating')}/{divergence.get('threshold')}")
        situations = document.get("active_situations")
        if isinstance(situations, list) and situations:
            entries = cast("list[object]", situations)
            lines.append(f"Active situations ({len(entries)}):")
            for situation in entries[:5]:
                text = situation if isinstance(situation, str) else json.dumps(situation)
                lines.append(f"  • {text[:80]}")
    elif kind is DocumentKind.ARC_EVENTS:
        arcs = _arc_keys(document)
        lines.append(f"Arcs present: {', '.join(arcs)}")
        for key in arcs:
            events = as_document(document.get(key)) or {}
            plural = "" if len(events) == 1 else "s"
            lines.append(f"  {key}: {len(events)} event{plural}")
    elif kind is DocumentKind.MASTER_INDEX:
        if document.get("setting"):
            lines.append(f"Setting: {document['setting']}")
        if document.get("current_arc"):
            lines.append(f"Arc:     {document['current_arc']}")
        active = document.get("active_npcs")
        if isinstance(active, list):
            lines.append(f"Active NPCs: {len(cast('list[object]', active))}")
    else:
        lines.append(json.dumps(document, indent=2, default=str)[:_PREVIEW_UNKNOWN_LENGTH])
    return "\n".join(lines)


def describe_import(
    data: object, kind: DocumentKind, source_name: str, target: str, *, exists: bool
) -> str:
    document = as_document(data) or {}
    overwrite = " (will overwrite existing)" if exists else ""
    match kind:
        case DocumentKind.CHARACTER:
            alias = f" / {document['alias']}" if document.get("alias") else ""
            faction = document.get("faction") or "unknown faction"
            return f"Import NPC: {document.get('display_name')}{alias}: {faction}{overwrite}"
        case DocumentKind.WORLD_STATE:
            arc = document.get("arc") or "?"
            date = document.get("in_world_date") or "no date"
            return f"Import {WORLD_STATE_FILENAME}: Arc {arc}, {date}{overwrite}"
        case DocumentKind.ARC_EVENTS:
            arcs = _arc_keys(document)
            plural = "" if len(arcs) == 1 else "s"
            return (
                f"Import {ARC_EVENTS_FILENAME}: {len(arcs)} arc{plural} ({', '.join(arcs)})"
                f"{overwrite}"
            )
        case DocumentKind.MASTER_INDEX:
            setting = document.get("setting") or "no setting listed"
            return f"Import {INDEX_FILENAME}: {setting}{overwrite}"
        case DocumentKind.UNKNOWN:
            return f'Import "{source_name}" → "{target}" (type unknown, review before accepting)'


def build_import_proposals(
    files: Iterable[tuple[str, str]],
    world: WorldModel,
    *,
    context_id: str | None = None,
) -> ImportResult:
    """Turn ``(source_name, text)`` pairs into whole-document proposals.

    Files that do not decode as JSON are reported as failures and skipped.
    """

    proposals: list[Proposal] = []
    failures: list[ImportFailure] = []
    for source_name, text in files:
        try:
            data: object = json.loads(text)
        except json.JSONDecodeError as exc:
            log.warning("Skipping import of %s: %s", source_name, exc)
            failures.append(ImportFailure(source_name=source_name, reason=str(exc)))
            continue

        kind = detect_kind(data)
        target = target_filename(data, source_name)
        exists = world.get(target) is not None
        proposals.append(
            Proposal(
                category=ProposalCategory.IMPORT,
                description=describe_import(data, kind, source_name, target, exists=exists),
                apply_change=partial(merge.replace_document, filename=target, data=data),
                target_key=target,
                old_value="[existing file]" if exists else None,
                new_value=data,
                context_id=context_id,
                preview=build_preview(data, kind),
            )
        )
    return ImportResult(proposals=proposals, failures=failures)
