"""Character reference resolution.

Resolution order, first match wins:
1) exact key match using the same derivation as character creation
2) scan character records in document order; casefolded candidates
   ``{display_name, alias, *aliases}`` match by containment in either
   direction

No match is not an error; callers skip the update.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, cast

from wormtracker.domain.world import character_key

if TYPE_CHECKING:
    from collections.abc import Iterator

    from wormtracker.domain.world import Document, WorldModel


class ReferenceResolver(Protocol):
    """Map a free-text character reference to a character key."""

    def resolve(self, name: str, world: WorldModel) -> str | None: ...


@dataclass(slots=True, frozen=True)
class FuzzyNameResolver:
    """Default resolver: exact key, then bidirectional substring containment."""

    def resolve(self, name: str, world: WorldModel) -> str | None:
        needle = name.strip().casefold() if isinstance(name, str) else ""
        if not needle:
            return None

        exact = character_key(name)
        if world.character(exact) is not None:
            return exact

        for key, record in world.characters():
            if any(needle in candidate or candidate in needle for candidate in _candidates(record)):
                return key
        return None


def resolve_character(
    name: str, world: WorldModel, resolver: ReferenceResolver | None = None
) -> str | None:
    return (resolver or FuzzyNameResolver()).resolve(name, world)


def _candidates(record: Document) -> Iterator[str]:
    aliases = record.get("aliases")
    names: list[object] = [record.get("display_name"), record.get("alias")]
    if isinstance(aliases, list):
        names.extend(cast("list[object]", aliases))
    for value in names:
        if isinstance(value, str) and value.strip():
            yield value.strip().casefold()
