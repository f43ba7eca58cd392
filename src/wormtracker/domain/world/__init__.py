"""World model documents."""

from __future__ import annotations

from .documents import (
    ARC_EVENTS_FILENAME,
    CHARACTER_KEY_PREFIX,
    INDEX_FILENAME,
    WORLD_STATE_FILENAME,
    EventStatus,
    arc_key,
    character_filename,
    character_key,
    default_arc_events,
    default_divergence,
    default_documents,
    default_index,
    default_world_state,
    is_character_filename,
    key_from_filename,
    scaffold_character,
)
from .model import Document, WorldModel, as_document

__all__ = [
    "ARC_EVENTS_FILENAME",
    "CHARACTER_KEY_PREFIX",
    "INDEX_FILENAME",
    "WORLD_STATE_FILENAME",
    "Document",
    "EventStatus",
    "WorldModel",
    "arc_key",
    "as_document",
    "character_filename",
    "character_key",
    "default_arc_events",
    "default_divergence",
    "default_documents",
    "default_index",
    "default_world_state",
    "is_character_filename",
    "key_from_filename",
    "scaffold_character",
]
