"""Delta reconciliation: raw change reports into reviewed world mutations.

Layered flow:
1) normalize a raw report (direct JSON or embedded block) into a canonical delta
2) resolve free-text character references to character keys
3) expand the delta into atomic proposals against the current world
4) review proposals in a context-tagged queue
5) apply accepted proposals with per-category merge rules
6) mirror locally and schedule a debounced push to the store
"""

from __future__ import annotations

from .delta import AliasChange, CanonicalDelta, NewCharacter, delta_is_empty
from .expand import expand_delta
from .imports import DocumentKind, ImportFailure, ImportResult, build_import_proposals
from .normalize import (
    extract_embedded_block,
    normalize_embedded_block,
    parse_direct_report,
    slugify_event,
    strip_code_fences,
)
from .persist import PersistenceScheduler
from .proposals import Proposal, ProposalCategory, ProposalState, ProposalStateError
from .resolve import FuzzyNameResolver, ReferenceResolver, resolve_character
from .review import ReviewQueue

__all__ = [
    "AliasChange",
    "CanonicalDelta",
    "DocumentKind",
    "FuzzyNameResolver",
    "ImportFailure",
    "ImportResult",
    "NewCharacter",
    "PersistenceScheduler",
    "Proposal",
    "ProposalCategory",
    "ProposalState",
    "ProposalStateError",
    "ReferenceResolver",
    "ReviewQueue",
    "build_import_proposals",
    "delta_is_empty",
    "expand_delta",
    "extract_embedded_block",
    "normalize_embedded_block",
    "parse_direct_report",
    "resolve_character",
    "slugify_event",
    "strip_code_fences",
]
