"""In-memory world model: the document set mirrored from the store."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal, cast, overload

from .documents import (
    ARC_EVENTS_FILENAME,
    DEFAULT_ARC,
    INDEX_FILENAME,
    WORLD_STATE_FILENAME,
    character_filename,
    is_character_filename,
    key_from_filename,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping
    from datetime import datetime

type Document = dict[str, object]


def as_document(value: object) -> Document | None:
    """Return ``value`` as a JSON object, or ``None`` for any other shape."""

    if isinstance(value, dict):
        return cast(Document, value)
    return None


@dataclass(slots=True)
class WorldModel:
    """Document set keyed by store filename.

    Documents are duck-typed JSON; accessors return ``None`` or an empty view
    rather than raising when a document is missing or has the wrong shape.
    """

    documents: dict[str, object] = field(default_factory=dict[str, object])

    @classmethod
    def from_documents(cls, documents: Mapping[str, object]) -> WorldModel:
        return cls(documents=copy.deepcopy(dict(documents)))

    @property
    def is_loaded(self) -> bool:
        return as_document(self.documents.get(WORLD_STATE_FILENAME)) is not None

    def get(self, filename: str) -> object | None:
        return self.documents.get(filename)

    @overload
    def document(self, filename: str, *, create: Literal[True]) -> Document: ...
    @overload
    def document(self, filename: str, *, create: bool = False) -> Document | None: ...
    def document(self, filename: str, *, create: bool = False) -> Document | None:
        """Return the JSON object stored under ``filename``.

        With ``create=True`` a missing or non-object document is replaced by an
        empty object, which is then returned.
        """

        existing = as_document(self.documents.get(filename))
        if existing is not None or not create:
            return existing
        created: Document = {}
        self.documents[filename] = created
        return created

    def put(self, filename: str, data: object) -> None:
        self.documents[filename] = data

    @property
    def index(self) -> Document:
        return as_document(self.documents.get(INDEX_FILENAME)) or {}

    @property
    def world_state(self) -> Document:
        return as_document(self.documents.get(WORLD_STATE_FILENAME)) or {}

    @property
    def arc_events(self) -> Document:
        return as_document(self.documents.get(ARC_EVENTS_FILENAME)) or {}

    def current_arc(self) -> str:
        arc = self.world_state.get("arc")
        return str(arc) if arc not in (None, "") else DEFAULT_ARC

    @overload
    def character(self, key: str, *, create: Literal[True]) -> Document: ...
    @overload
    def character(self, key: str, *, create: bool = False) -> Document | None: ...
    def character(self, key: str, *, create: bool = False) -> Document | None:
        return self.document(character_filename(key), create=create)

    def has_character(self, key: str) -> bool:
        return character_filename(key) in self.documents

    def characters(self) -> Iterator[tuple[str, Document]]:
        """Yield ``(key, record)`` for every character document, in document order."""

        for filename, data in self.documents.items():
            if not is_character_filename(filename):
                continue
            record = as_document(data)
            if record is not None:
                yield key_from_filename(filename), record

    def character_keys(self) -> list[str]:
        return [key for key, _record in self.characters()]

    def touch(self, now: datetime) -> None:
        """Stamp ``last_updated`` on the index, if one exists."""

        index = as_document(self.documents.get(INDEX_FILENAME))
        if index is not None:
            index["last_updated"] = now.isoformat()

    def snapshot(self) -> WorldModel:
        return WorldModel(documents=copy.deepcopy(self.documents))

    def clear(self) -> None:
        self.documents.clear()

    def to_store_files(self) -> dict[str, dict[str, str]]:
        """Serialise every document into the store's ``{filename: {content}}`` shape."""

        files: dict[str, dict[str, str]] = {}
        for filename, data in self.documents.items():
            content = data if isinstance(data, str) else json.dumps(data, indent=2)
            files[filename] = {"content": content}
        return files
