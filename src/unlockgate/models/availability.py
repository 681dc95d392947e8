"""Availability models — immutable results of a resolution pass.

Both values are replaced wholesale, never mutated, so they can be read
from any thread while the owning session recomputes.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AvailabilitySnapshot:
    """Every item id currently permitted.

    Attributes:
        available_ids: Primary and variant ids of effectively unlocked
            trackable items, plus the ids of satisfied derived items.
    """

    available_ids: frozenset[int] = field(default_factory=frozenset)

    def __contains__(self, iid: object) -> bool:
        return iid in self.available_ids

    def __len__(self) -> int:
        return len(self.available_ids)


EMPTY_SNAPSHOT = AvailabilitySnapshot()


@dataclass(frozen=True)
class TransitionReport:
    """Outcome of one ledger mutation.

    Attributes:
        changed: Whether the ledger state actually changed.
        newly_available: Derived item names that became available,
            sorted case-insensitively.
        snapshot: The availability snapshot after the mutation.
    """

    changed: bool = False
    newly_available: tuple[str, ...] = ()
    snapshot: AvailabilitySnapshot = EMPTY_SNAPSHOT
