"""Ledger model — a player's unlock state.

The ledger records which trackable items are directly unlocked, plus
the manual overrides the player applied on top of automatic detection.
Membership in the catalog is checked by the owning service, not here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable


@dataclass
class Ledger:
    """Unlock state of a single player.

    Invariants: ``manually_added`` is a subset of ``unlocked`` and
    ``manually_locked`` never intersects ``unlocked``.

    Attributes:
        unlocked: Directly unlocked trackable primary ids.
        manually_added: Unlocks that came from explicit user action.
        manually_locked: Detected unlocks the user forced back to locked.
    """

    unlocked: set[int] = field(default_factory=set)
    manually_added: set[int] = field(default_factory=set)
    manually_locked: set[int] = field(default_factory=set)

    # -- Mutations -------------------------------------------------------

    def unlock(self, iid: int, manual: bool = False) -> bool:
        """Mark *iid* as unlocked.  Returns True if the state changed.

        Unlocking clears a previous manual lock.  An unlock that clears a
        manual lock is not itself recorded as manual.
        """
        if iid in self.unlocked:
            return False
        self.unlocked.add(iid)
        was_manually_locked = iid in self.manually_locked
        self.manually_locked.discard(iid)
        if manual and not was_manually_locked:
            self.manually_added.add(iid)
        return True

    def lock(self, iid: int) -> bool:
        """Remove *iid* from the unlocked set.  Returns True if the state changed.

        Locking a manual unlock just undoes it.  Locking a detected unlock
        records a manual lock.
        """
        if iid not in self.unlocked:
            return False
        self.unlocked.discard(iid)
        if iid in self.manually_added:
            self.manually_added.discard(iid)
        else:
            self.manually_locked.add(iid)
        return True

    def reset_all(self) -> None:
        """Forget every unlock and override."""
        self.unlocked.clear()
        self.manually_added.clear()
        self.manually_locked.clear()

    def reset_manual_overrides(self) -> tuple[int, int]:
        """Undo all user overrides, restoring what detection produced.

        Returns:
            ``(restored, removed)``: the number of manual locks that were
            re-unlocked and the number of manual additions dropped.
        """
        restored = len(self.manually_locked)
        removed = len(self.manually_added)
        self.unlocked = (self.unlocked | self.manually_locked) - self.manually_added
        self.manually_added.clear()
        self.manually_locked.clear()
        return restored, removed

    def reconcile(self, entries: Iterable[tuple[int, bool]]) -> tuple[int, int, int]:
        """Apply one observed page of ``(iid, obtained)`` entries.

        Obtained items become real unlocks unless the user locked them.
        Unlocked items the page shows as not obtained can only have come
        from a manual unlock and are moved to ``manually_added``.

        Returns:
            ``(new_unlocks, migrated, confirmed)`` counts, where
            ``confirmed`` counts manual unlocks the page proved real.
        """
        new_unlocks = 0
        migrated = 0
        confirmed = 0
        for iid, obtained in entries:
            if obtained:
                if iid in self.manually_locked:
                    continue
                if iid not in self.unlocked:
                    self.unlocked.add(iid)
                    new_unlocks += 1
                if iid in self.manually_added:
                    self.manually_added.discard(iid)
                    confirmed += 1
            elif iid in self.unlocked and iid not in self.manually_added:
                self.manually_added.add(iid)
                migrated += 1
        return new_unlocks, migrated, confirmed

    # -- Helpers ---------------------------------------------------------

    def normalize(self) -> None:
        """Re-establish the invariants after loading from storage."""
        self.manually_added &= self.unlocked
        self.manually_locked -= self.unlocked

    def copy(self) -> Ledger:
        """Return an independent copy (safe to hand to another thread)."""
        return Ledger(
            unlocked=set(self.unlocked),
            manually_added=set(self.manually_added),
            manually_locked=set(self.manually_locked),
        )
