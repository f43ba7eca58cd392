"""Ports for the local mirror and context-to-store links."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(slots=True)
class MirrorSnapshot:
    """Full document set of one context, as last written locally."""

    context_id: str
    store_id: str | None
    documents: dict[str, object]
    saved_at: datetime


@runtime_checkable
class MirrorRepository(Protocol):
    def get(self, context_id: str) -> MirrorSnapshot | None: ...

    def save(self, snapshot: MirrorSnapshot) -> None: ...

    def delete(self, context_id: str) -> None: ...


@runtime_checkable
class StoreLinkRepository(Protocol):
    """Which remote store a context is bound to."""

    def get(self, context_id: str) -> str | None: ...

    def link(self, context_id: str, store_id: str, *, now: datetime | None = None) -> None: ...

    def last_used(self) -> str | None:
        """Store id most recently linked to any context."""
        ...
