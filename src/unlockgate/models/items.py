"""Item definition models.

Defines the two kinds of catalog entries:

- ``TrackableItem``: an achievement-gated item family whose unlock is
  recorded in the player's ledger.  May be craftable from other
  trackable items.
- ``DerivedItem``: an item that is never unlocked directly but becomes
  available once every trackable item it depends on is available.

Loaded from config/catalog.yaml via the catalog_loader.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TrackableItem:
    """Definition of a trackable item.

    Attributes:
        primary_id: Unique item identifier.
        name: Human-readable display name.
        tabs: Category tags (e.g. ``"Clues/Beginner Treasure Trails"``).
        variant_ids: Alternate item ids meaning the same unlocked item
            (charged / uncharged, new / used, ...).  May be empty.
        recipes: Alternative ways to obtain this item from other
            trackable items.  Outer tuple is OR, inner tuple is AND.
            Empty means the item must be unlocked directly.
    """

    primary_id: int = 0
    name: str = ""
    tabs: tuple[str, ...] = ()
    variant_ids: frozenset[int] = field(default_factory=frozenset)
    recipes: tuple[tuple[int, ...], ...] = ()

    @property
    def all_ids(self) -> frozenset[int]:
        """Primary id plus every variant id."""
        return self.variant_ids | {self.primary_id}

    def in_tab(self, markers: frozenset[str]) -> bool:
        """True if any tab tag contains any of *markers*."""
        return any(marker in tab for tab in self.tabs for marker in markers)


@dataclass(frozen=True)
class DerivedItem:
    """Definition of a derived item.

    Attributes:
        name: Human-readable display name (also the catalog key).
        item_ids: Item ids governed by this entry, in declaration order.
            The first id is the representative used for transition
            detection.
        dependencies: Trackable primary ids that must all be effectively
            unlocked, in declaration order.  Empty means the entry is
            inert and never makes anything available.
    """

    name: str = ""
    item_ids: tuple[int, ...] = ()
    dependencies: tuple[int, ...] = ()

    @property
    def is_inert(self) -> bool:
        return not self.dependencies
