"""Application orchestration: one tracker session per active context."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from wormtracker.config import MissingConfigurationError, TrackerConfig, get_tracker_config
from wormtracker.domain.extraction import (
    build_extraction_prompt,
    merge_continuation,
    state_summary,
    strip_reasoning_blocks,
)
from wormtracker.domain.ports import OracleError, StoreError
from wormtracker.domain.reconciliation import (
    CanonicalDelta,
    FuzzyNameResolver,
    ImportResult,
    NewCharacter,
    PersistenceScheduler,
    ReviewQueue,
    build_import_proposals,
    expand_delta,
    extract_embedded_block,
    normalize_embedded_block,
    parse_direct_report,
)
from wormtracker.domain.reconciliation.merge import create_character
from wormtracker.domain.render import ContextInjection, build_context_injection, recent_text
from wormtracker.domain.world import WorldModel, character_key, default_documents

if TYPE_CHECKING:
    from collections.abc import Iterable

    from wormtracker.domain.ports import DocumentStore, Oracle, StatusSink, TrackerUnitOfWork
    from wormtracker.domain.reconciliation import Proposal, ReferenceResolver

type UnitOfWorkFactory = Callable[[], TrackerUnitOfWork]

log = getLogger(__name__)

DEFAULT_STORE_DESCRIPTION = "Worm RP State Tracker"


class InvalidEditError(ValueError):
    """Raised when a hand-edited document does not decode; the world is untouched."""


def log_status(message: str) -> None:
    log.info("status: %s", message)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


@dataclass(slots=True, kw_only=True)
class TrackerSession:
    """Session-scoped state: the world, its review queue and persistence.

    Everything that used to be ambient (current documents, queue, store id)
    hangs off this object and is reset by ``switch_context``.
    """

    unit_of_work_factory: UnitOfWorkFactory
    store: DocumentStore | None = None
    oracle: Oracle | None = None
    config: TrackerConfig = field(default_factory=TrackerConfig)
    status: StatusSink = log_status
    resolver: ReferenceResolver = field(default_factory=FuzzyNameResolver)
    clock: Callable[[], datetime] = _utc_now
    world: WorldModel = field(default_factory=WorldModel)
    context_id: str | None = None
    store_id: str | None = None
    recent_messages: list[str] = field(default_factory=list[str])
    queue: ReviewQueue = field(init=False)
    scheduler: PersistenceScheduler = field(init=False)
    context_injection: ContextInjection = field(init=False)
    _last_message: str = field(default="", init=False, repr=False)
    _extracting: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        self.queue = ReviewQueue(world=self.world, context_id=self.context_id)
        self.queue.add_listener(self._on_applied)
        self.scheduler = PersistenceScheduler(
            unit_of_work_factory=self.unit_of_work_factory,
            status=self.status,
            store=self.store,
            push_delay_seconds=self.config.push_delay_seconds,
            mirror_max_age=self.config.mirror_max_age,
            clock=self.clock,
            context_id=self.context_id,
            store_id=self.store_id,
        )
        self.refresh_injection()

    @property
    def is_extracting(self) -> bool:
        return self._extracting

    # Context -----------------------------------------------------------------

    async def switch_context(self, context_id: str, *, prefer_remote: bool = False) -> bool:
        """Make ``context_id`` active; returns whether a world was loaded.

        The queue is cleared, any pending push for the previous context is
        flushed first, and the fresh local mirror wins over a remote fetch
        unless ``prefer_remote`` is set.
        """

        await self.scheduler.flush()
        self.queue.reset(context_id)
        self.world.clear()
        self.recent_messages.clear()
        self._last_message = ""
        self.context_id = context_id

        with self.unit_of_work_factory() as uow:
            links = uow.repositories.store_links
            self.store_id = links.get(context_id) or links.last_used()
        self.scheduler.bind(context_id, self.store_id)

        loaded = False
        if not prefer_remote:
            snapshot = self.scheduler.load_mirror(context_id)
            if snapshot is not None:
                self.world.documents.update(snapshot.documents)
                if snapshot.store_id:
                    self.store_id = snapshot.store_id
                    self.scheduler.store_id = snapshot.store_id
                log.info("Loaded local mirror for %s", context_id)
                loaded = True
        if not loaded and self.store_id is not None:
            loaded = await self.sync_from_store()
        self.refresh_injection()
        return loaded

    def link_store(self, store_id: str) -> None:
        if self.context_id is None:
            raise ValueError("No active context to link")
        with self.unit_of_work_factory() as uow:
            uow.repositories.store_links.link(self.context_id, store_id, now=self.clock())
            uow.commit()
        self.store_id = store_id
        self.scheduler.store_id = store_id
        log.info("Linked context %s to store %s", self.context_id, store_id)

    # Store -------------------------------------------------------------------

    async def create_store(self, description: str = DEFAULT_STORE_DESCRIPTION) -> str | None:
        if self.store is None:
            self.status("create failed: no store configured")
            return None
        documents = default_documents(self.context_id, now=self.clock())
        self.status("creating store…")
        try:
            store_id = await self.store.create(
                description, WorldModel(documents=documents).to_store_files()
            )
        except StoreError as exc:
            log.warning("Store creation failed: %s", exc)
            self.status(f"create failed: {exc}")
            return None

        self.world.clear()
        self.world.documents.update(documents)
        if self.context_id is not None:
            self.link_store(store_id)
        else:
            self.store_id = store_id
            self.scheduler.store_id = store_id
        self.scheduler.write_mirror(self.world)
        self.refresh_injection()
        self.status(f"created store {store_id}")
        return store_id

    async def sync_from_store(self) -> bool:
        if self.store is None or self.store_id is None:
            self.status("no store id: link or create one")
            return False
        self.status("fetching from store…")
        try:
            documents = await self.store.fetch_all(self.store_id)
        except StoreError as exc:
            log.warning("Store fetch failed: %s", exc)
            self.status(f"sync failed: {exc}")
            return False
        self.world.clear()
        self.world.documents.update(documents)
        self.scheduler.write_mirror(self.world)
        self.refresh_injection()
        self.status("synced")
        return True

    async def push(self) -> bool:
        if self.scheduler.has_pending_push:
            return await self.scheduler.flush()
        return await self.scheduler.push(self.world)

    async def close(self) -> None:
        """Push anything still waiting on the debounce timer."""

        await self.scheduler.flush()

    # Extraction --------------------------------------------------------------

    async def handle_message(
        self,
        raw_text: str,
        *,
        previous_text: str | None = None,
        is_continue: bool = False,
    ) -> int:
        """Turn one narrative message into queued proposals; returns how many were queued."""

        context_id = self.context_id
        self.recent_messages.append(raw_text)
        self.refresh_injection()

        block = extract_embedded_block(raw_text)
        if block is not None:
            delta = normalize_embedded_block(
                block, self.world, resolver=self.resolver, clock=self.clock
            )
            return self._propose(delta, context_id)

        clean = merge_continuation(
            strip_reasoning_blocks(raw_text), previous_text, is_continue=is_continue
        )
        if not clean or clean == self._last_message:
            log.debug("Skipping empty or repeated message")
            return 0
        self._last_message = clean
        if not self.world.is_loaded:
            log.info("No world state loaded; skipping extraction")
            return 0
        if self._extracting:
            log.info("Extraction already in flight; dropping message")
            return 0
        if self.oracle is None:
            self.status("extraction disabled: no oracle configured")
            return 0

        self._extracting = True
        self.status("extracting changes…")
        try:
            raw = await self.oracle.extract(
                build_extraction_prompt(clean, state_summary(self.world))
            )
        except OracleError as exc:
            log.warning("Extraction failed: %s", exc)
            self.status(f"extraction error: {exc}")
            return 0
        finally:
            self._extracting = False

        if context_id != self.context_id:
            log.info("Discarding extraction for stale context %s", context_id)
            return 0
        return self._propose(parse_direct_report(raw), context_id)

    def _propose(self, delta: CanonicalDelta | None, context_id: str | None) -> int:
        if delta is None or delta.is_empty():
            self.status("idle")
            return 0
        proposals = expand_delta(delta, self.world, context_id=context_id, clock=self.clock)
        added = self.queue.enqueue(proposals)
        if added:
            self.status(f"{_plural(len(self.queue), 'change')} pending review")
        else:
            self.status("idle")
        return added

    # Review ------------------------------------------------------------------

    @property
    def pending(self) -> tuple[Proposal, ...]:
        return self.queue.pending

    def accept(self, proposal_id: str) -> bool:
        accepted = self.queue.accept(proposal_id)
        if accepted and not self.queue:
            self.status("all changes applied")
        return accepted

    def deny(self, proposal_id: str) -> bool:
        denied = self.queue.deny(proposal_id)
        if denied and not self.queue:
            self.status("idle")
        return denied

    def accept_all(self) -> int:
        applied = self.queue.accept_all()
        self.status("all changes applied")
        return applied

    def deny_all(self) -> int:
        denied = self.queue.deny_all()
        self.status("all changes denied")
        return denied

    def toggle_expand(self, proposal_id: str) -> bool | None:
        return self.queue.toggle_expand(proposal_id)

    def _on_applied(self, applied: list[Proposal]) -> None:
        log.debug("Applied %d proposals", len(applied))
        self._mutated()

    def _mutated(self) -> None:
        self.world.touch(self.clock())
        self.scheduler.request(self.world)
        self.refresh_injection()

    # Direct edits ------------------------------------------------------------

    def import_documents(self, files: Iterable[tuple[str, str]]) -> ImportResult:
        result = build_import_proposals(files, self.world, context_id=self.context_id)
        for failure in result.failures:
            self.status(f"parse error in {failure.source_name}: {failure.reason}")
        added = self.queue.enqueue(result.proposals)
        if added:
            self.status(f"{_plural(added, 'file')} ready to review")
        else:
            self.status("no valid files found")
        return result

    def edit_document(self, filename: str, text: str) -> None:
        """Replace ``filename`` with hand-edited JSON ``text``."""

        try:
            data: object = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidEditError(f"{filename} is not valid JSON: {exc.msg}") from exc
        self.world.put(filename, data)
        self._mutated()
        self.status(f"{filename} updated")

    def add_character(
        self,
        display_name: str,
        *,
        alias: str | None = None,
        aliases: list[str] | None = None,
        faction: str | None = None,
        first_appeared: str | None = None,
    ) -> str | None:
        """Scaffold a character directly; returns its key, or ``None`` if it exists."""

        created = create_character(
            self.world,
            NewCharacter(
                display_name=display_name,
                alias=alias,
                aliases=list(aliases or []),
                faction=faction,
                first_appeared=first_appeared,
            ),
        )
        if not created:
            self.status(f"{display_name} already tracked")
            return None
        self._mutated()
        return character_key(display_name)

    # Rendering ---------------------------------------------------------------

    def refresh_injection(self) -> ContextInjection:
        self.context_injection = build_context_injection(
            self.world,
            recent_text(self.recent_messages, self.config.scan_depth),
            limit=self.config.max_characters,
        )
        return self.context_injection


def build_session(
    *,
    context_id: str | None = None,
    status: StatusSink | None = None,
) -> TrackerSession:
    """Wire a session to the configured SQLite mirror, gist store and oracle.

    The store and the oracle are optional: missing credentials disable them
    with a warning instead of failing the session.
    """

    from wormtracker.adapters.gist import GistStore  # noqa: PLC0415
    from wormtracker.adapters.oracle import ChatCompletionOracle  # noqa: PLC0415
    from wormtracker.adapters.sqlalchemy import (  # noqa: PLC0415
        SqlAlchemyTrackerUnitOfWork,
        is_started,
        startup,
    )

    if not is_started():
        startup()

    store: DocumentStore | None
    try:
        store = GistStore()
    except MissingConfigurationError as exc:
        log.warning("Remote store disabled: %s", exc)
        store = None

    oracle: Oracle | None
    try:
        oracle = ChatCompletionOracle()
    except MissingConfigurationError as exc:
        log.warning("Extraction oracle disabled: %s", exc)
        oracle = None

    return TrackerSession(
        unit_of_work_factory=SqlAlchemyTrackerUnitOfWork,
        store=store,
        oracle=oracle,
        config=get_tracker_config(),
        status=status or log_status,
        context_id=context_id,
    )
