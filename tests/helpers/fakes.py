from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from wormtracker.domain.ports import (
    MirrorSnapshot,
    OracleError,
    StoreError,
    TrackerRepositories,
)

if TYPE_CHECKING:
    from datetime import datetime
    from types import TracebackType

    from wormtracker.domain.ports import StoreFiles


class InMemoryMirrorRepository:
    def __init__(self) -> None:
        self.snapshots: dict[str, MirrorSnapshot] = {}

    def get(self, context_id: str) -> MirrorSnapshot | None:
        snapshot = self.snapshots.get(context_id)
        if snapshot is None:
            return None
        return MirrorSnapshot(
            context_id=snapshot.context_id,
            store_id=snapshot.store_id,
            documents=copy.deepcopy(snapshot.documents),
            saved_at=snapshot.saved_at,
        )

    def save(self, snapshot: MirrorSnapshot) -> None:
        self.snapshots[snapshot.context_id] = snapshot

    def delete(self, context_id: str) -> None:
        self.snapshots.pop(context_id, None)


class InMemoryStoreLinkRepository:
    def __init__(self) -> None:
        self.links: dict[str, str] = {}
        self.order: list[str] = []

    def get(self, context_id: str) -> str | None:
        return self.links.get(context_id)

    def link(self, context_id: str, store_id: str, *, now: datetime | None = None) -> None:
        _ = now
        self.links[context_id] = store_id
        self.order.append(store_id)

    def last_used(self) -> str | None:
        return self.order[-1] if self.order else None


class FakeTrackerUnitOfWork:
    def __init__(self, repositories: TrackerRepositories, factory: FakeUnitOfWorkFactory) -> None:
        self._repositories = repositories
        self._factory = factory

    @property
    def repositories(self) -> TrackerRepositories:
        return self._repositories

    def __enter__(self) -> FakeTrackerUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        return False

    def commit(self) -> None:
        self._factory.commits += 1

    def rollback(self) -> None:
        return None


class FakeUnitOfWorkFactory:
    """Hands out units of work sharing one set of in-memory repositories."""

    def __init__(self) -> None:
        self.mirrors = InMemoryMirrorRepository()
        self.store_links = InMemoryStoreLinkRepository()
        self.commits = 0

    def __call__(self) -> FakeTrackerUnitOfWork:
        return FakeTrackerUnitOfWork(
            TrackerRepositories(mirrors=self.mirrors, store_links=self.store_links), self
        )


@dataclass
class FakeStore:
    stores: dict[str, dict[str, object]] = field(default_factory=dict[str, dict[str, object]])
    patches: list[tuple[str, dict[str, dict[str, str]]]] = field(
        default_factory=list[tuple[str, dict[str, dict[str, str]]]]
    )
    created: list[str] = field(default_factory=list[str])
    error: StoreError | None = None

    async def fetch_all(self, store_id: str) -> dict[str, object]:
        if self.error is not None:
            raise self.error
        if store_id not in self.stores:
            raise StoreError(f"Gist fetch failed (404): {store_id}", status_code=404)
        return copy.deepcopy(self.stores[store_id])

    async def patch(self, store_id: str, files: StoreFiles) -> None:
        if self.error is not None:
            raise self.error
        plain = {name: dict(file) for name, file in files.items()}
        self.patches.append((store_id, plain))
        self.stores[store_id] = {
            name: json.loads(file["content"]) for name, file in plain.items()
        }

    async def create(self, description: str, files: StoreFiles) -> str:
        _ = description
        if self.error is not None:
            raise self.error
        store_id = f"gist-{len(self.created) + 1}"
        self.created.append(store_id)
        self.stores[store_id] = {
            name: json.loads(file["content"]) for name, file in files.items()
        }
        return store_id


@dataclass
class FakeOracle:
    responses: list[str] = field(default_factory=list[str])
    prompts: list[str] = field(default_factory=list[str])
    error: OracleError | None = None

    async def extract(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.responses.pop(0) if self.responses else "{}"


@dataclass
class StatusRecorder:
    messages: list[str] = field(default_factory=list[str])

    def __call__(self, message: str) -> None:
        self.messages.append(message)

    @property
    def last(self) -> str | None:
        return self.messages[-1] if self.messages else None
