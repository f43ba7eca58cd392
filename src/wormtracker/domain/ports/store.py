"""Remote document store and text oracle ports."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

type StoreFiles = Mapping[str, Mapping[str, str]]


class StoreError(RuntimeError):
    """Raised when the remote document store rejects or fails a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OracleError(RuntimeError):
    """Raised when the text oracle cannot produce a completion."""


@runtime_checkable
class DocumentStore(Protocol):
    """Key to JSON blob store holding one world per store id."""

    async def fetch_all(self, store_id: str) -> dict[str, object]:
        """Return every document; non-JSON content is returned as a string."""
        ...

    async def patch(self, store_id: str, files: StoreFiles) -> None: ...

    async def create(self, description: str, files: StoreFiles) -> str:
        """Create a new store and return its id."""
        ...


@runtime_checkable
class Oracle(Protocol):
    """Opaque text generator used to extract change reports."""

    async def extract(self, prompt: str) -> str: ...


@runtime_checkable
class StatusSink(Protocol):
    """Receives user-facing status strings."""

    def __call__(self, message: str) -> None: ...
