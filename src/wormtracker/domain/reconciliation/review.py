"""Review queue: the pending-proposal state machine.

Per proposal: ``pending -> applied`` (accept) or ``pending -> discarded``
(deny). Both are terminal and remove the proposal from the queue. The
queue belongs to one context at a time; ``reset`` clears it on a switch
and results tagged for another context are refused at ``enqueue``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wormtracker.domain.world import WorldModel

    from .proposals import Proposal

log = logging.getLogger(__name__)

type AppliedListener = Callable[[list[Proposal]], None]


@dataclass(slots=True)
class ReviewQueue:
    world: WorldModel
    context_id: str | None = None
    _items: list[Proposal] = field(default_factory=list["Proposal"])
    _listeners: list[AppliedListener] = field(default_factory=list["AppliedListener"])

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Proposal]:
        return iter(tuple(self._items))

    @property
    def pending(self) -> tuple[Proposal, ...]:
        return tuple(self._items)

    def add_listener(self, listener: AppliedListener) -> None:
        """Register a callback run once after every accept or accepted batch."""

        self._listeners.append(listener)

    def get(self, proposal_id: str) -> Proposal | None:
        return next((item for item in self._items if item.id == proposal_id), None)

    def enqueue(self, proposals: Iterable[Proposal]) -> int:
        """Append proposals in order; returns how many were accepted into the queue."""

        added = 0
        for proposal in proposals:
            if proposal.context_id != self.context_id:
                log.info(
                    "Discarding proposal for stale context %r (active %r): %s",
                    proposal.context_id,
                    self.context_id,
                    proposal.description,
                )
                continue
            self._items.append(proposal)
            added += 1
        return added

    def accept(self, proposal_id: str) -> bool:
        proposal = self.get(proposal_id)
        if proposal is None:
            log.debug("accept: no pending proposal %s", proposal_id)
            return False
        proposal.apply(self.world)
        self._items.remove(proposal)
        self._notify([proposal])
        return True

    def deny(self, proposal_id: str) -> bool:
        proposal = self.get(proposal_id)
        if proposal is None:
            log.debug("deny: no pending proposal %s", proposal_id)
            return False
        proposal.discard()
        self._items.remove(proposal)
        return True

    def accept_all(self) -> int:
        """Apply every queued proposal in queue order as one batch."""

        applied: list[Proposal] = []
        try:
            for proposal in tuple(self._items):
                proposal.apply(self.world)
                self._items.remove(proposal)
                applied.append(proposal)
        finally:
            if applied:
                self._notify(applied)
        return len(applied)

    def deny_all(self) -> int:
        denied = 0
        for proposal in tuple(self._items):
            proposal.discard()
            denied += 1
        self._items.clear()
        return denied

    def toggle_expand(self, proposal_id: str) -> bool | None:
        """Flip the preview flag; returns the new value, or ``None`` for unknown ids."""

        proposal = self.get(proposal_id)
        if proposal is None:
            return None
        proposal.expanded = not proposal.expanded
        return proposal.expanded

    def reset(self, context_id: str | None) -> None:
        for proposal in self._items:
            proposal.discard()
        self._items.clear()
        self.context_id = context_id

    def _notify(self, applied: list[Proposal]) -> None:
        for listener in self._listeners:
            listener(applied)
