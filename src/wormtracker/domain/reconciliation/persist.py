"""Persistence scheduling for accepted mutations.

Every request writes the local mirror synchronously, then (re)arms a single
trailing-debounce push to the remote store. Rapid requests collapse into one
push measured from the most recent request. Push failures are reported, not
retried here; the mirror stays authoritative until the next successful push.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from wormtracker.domain.ports import MirrorSnapshot, StoreError

if TYPE_CHECKING:
    from wormtracker.domain.ports import DocumentStore, StatusSink, TrackerUnitOfWork
    from wormtracker.domain.world import WorldModel

log = logging.getLogger(__name__)

type UnitOfWorkFactory = Callable[[], TrackerUnitOfWork]

DEFAULT_PUSH_DELAY_SECONDS = 8.0
DEFAULT_MIRROR_MAX_AGE = timedelta(hours=24)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True, kw_only=True)
class PersistenceScheduler:
    unit_of_work_factory: UnitOfWorkFactory
    status: StatusSink
    store: DocumentStore | None = None
    push_delay_seconds: float = DEFAULT_PUSH_DELAY_SECONDS
    mirror_max_age: timedelta = DEFAULT_MIRROR_MAX_AGE
    clock: Callable[[], datetime] = _utc_now
    context_id: str | None = None
    store_id: str | None = None
    _pending: WorldModel | None = field(default=None, repr=False)
    _timer: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def has_pending_push(self) -> bool:
        return self._pending is not None

    def bind(self, context_id: str | None, store_id: str | None) -> None:
        """Point the scheduler at another context; an armed push is dropped."""

        self.cancel()
        self._pending = None
        self.context_id = context_id
        self.store_id = store_id

    def request(self, world: WorldModel) -> None:
        """Mirror ``world`` now and arm (or re-arm) the debounced push."""

        self.write_mirror(world)
        self._pending = world
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("No running event loop; push waits for flush()")
            return
        self._timer = loop.create_task(self._push_after_delay())

    def cancel(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def flush(self) -> bool:
        """Cancel the timer and push any pending world immediately."""

        self.cancel()
        return await self._push_pending()

    def write_mirror(self, world: WorldModel) -> None:
        if self.context_id is None:
            log.debug("No active context; skipping local mirror write")
            return
        snapshot = MirrorSnapshot(
            context_id=self.context_id,
            store_id=self.store_id,
            documents=world.snapshot().documents,
            saved_at=self.clock(),
        )
        with self.unit_of_work_factory() as uow:
            uow.repositories.mirrors.save(snapshot)
            uow.commit()

    def load_mirror(self, context_id: str) -> MirrorSnapshot | None:
        """Return the mirror for ``context_id`` unless it is older than the freshness window."""

        with self.unit_of_work_factory() as uow:
            snapshot = uow.repositories.mirrors.get(context_id)
        if snapshot is None:
            return None
        age = self.clock() - snapshot.saved_at
        if age > self.mirror_max_age:
            log.info("Ignoring local mirror for %s: %s old", context_id, age)
            return None
        return snapshot

    async def push(self, world: WorldModel) -> bool:
        """Write ``world`` to the remote store; returns whether it succeeded."""

        if self.store is None or self.store_id is None:
            log.debug("No store bound; nothing pushed")
            return False
        self.status("saving to store…")
        try:
            await self.store.patch(self.store_id, world.to_store_files())
        except StoreError as exc:
            log.warning("Push to store %s failed: %s", self.store_id, exc)
            self.status(f"save failed: {exc}")
            return False
        self.status("saved")
        return True

    async def _push_after_delay(self) -> None:
        await asyncio.sleep(self.push_delay_seconds)
        self._timer = None
        await self._push_pending()

    async def _push_pending(self) -> bool:
        world = self._pending
        if world is None:
            return False
        self._pending = None
        return await self.push(world)
