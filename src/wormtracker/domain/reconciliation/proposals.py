"""Pending change proposals: one atomic, independently reviewable mutation each."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING
from uuid import uuid4

if TYPE_CHECKING:
    from wormtracker.domain.world import WorldModel

type ApplyChange = Callable[[WorldModel], object]


class ProposalCategory(StrEnum):
    NPC_KNOWLEDGE = "npc_knowledge"
    NPC_RELATIONSHIP = "npc_relationship"
    NPC_CURRENT_STATE = "npc_current_state"
    NPC_ALIASES = "npc_aliases"
    ARC_EVENT = "arc_events"
    WORLD_STATE = "world_state"
    DIVERGENCE = "divergence_delta"
    IN_WORLD_DATE = "in_world_date"
    NEW_NPC = "new_npcs"
    IMPORT = "import"


class ProposalState(StrEnum):
    PENDING = "pending"
    APPLIED = "applied"
    DISCARDED = "discarded"


class ProposalStateError(RuntimeError):
    """Raised when a proposal leaves a terminal state."""


@dataclass(slots=True, kw_only=True)
class Proposal:
    """A single leaf change awaiting a review decision.

    ``apply_change`` mutates the world model synchronously and performs no
    I/O. ``old_value`` is a snapshot taken when the proposal was built.
    """

    category: ProposalCategory
    description: str
    apply_change: ApplyChange = field(repr=False)
    target_key: str | None = None
    old_value: object = None
    new_value: object = None
    context_id: str | None = None
    preview: str | None = None
    expanded: bool = False
    state: ProposalState = ProposalState.PENDING
    id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def is_pending(self) -> bool:
        return self.state is ProposalState.PENDING

    def apply(self, world: WorldModel) -> None:
        if not self.is_pending:
            raise ProposalStateError(f"Proposal {self.id} is already {self.state}")
        self.apply_change(world)
        self.state = ProposalState.APPLIED

    def discard(self) -> None:
        if not self.is_pending:
            raise ProposalStateError(f"Proposal {self.id} is already {self.state}")
        self.state = ProposalState.DISCARDED
