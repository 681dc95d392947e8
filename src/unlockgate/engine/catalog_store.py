"""Catalog store — item definition database.

Holds every trackable and derived item definition and the lookup
indexes built from them.  Read-only after initialization; a single
instance is shared by every session in the process.
"""

from __future__ import annotations

import logging
from typing import Iterable

from unlockgate.models.items import DerivedItem, TrackableItem
from unlockgate.util.errors import DataError

log = logging.getLogger(__name__)


class CatalogStore:
    """Item catalog — read-only after initialization.

    Attributes:
        trackables: Trackable item definitions keyed by primary id, in
            catalog order.
        derived: Derived item definitions keyed by name, in catalog order.
        name_index: Lower-cased name → trackable primary id.
        primary_by_id: Any trackable item id (variants included) →
            primary id.
        derived_by_id: Any derived item id → derived item.
    """

    def __init__(self) -> None:
        self.trackables: dict[int, TrackableItem] = {}
        self.derived: dict[str, DerivedItem] = {}
        self.name_index: dict[str, int] = {}
        self.primary_by_id: dict[int, int] = {}
        self.derived_by_id: dict[int, DerivedItem] = {}

    def load(self, trackables: Iterable[TrackableItem],
             derived: Iterable[DerivedItem] = ()) -> None:
        """Load definitions and build the lookup indexes.

        Raises:
            DataError: A recipe ingredient or derived dependency names a
                trackable item that is not in the catalog.
        """
        items = {item.primary_id: item for item in trackables}
        derived_items = {d.name: d for d in derived}

        for item in items.values():
            for recipe in item.recipes:
                for ingredient in recipe:
                    if ingredient not in items:
                        raise DataError(
                            f"trackable item {item.primary_id} ({item.name}): "
                            f"recipe references unknown item {ingredient}"
                        )
        for d in derived_items.values():
            for dep in d.dependencies:
                if dep not in items:
                    raise DataError(
                        f"derived item {d.name!r}: dependency references unknown item {dep}"
                    )

        name_index: dict[str, int] = {}
        primary_by_id: dict[int, int] = {}
        for primary_id, item in items.items():
            name_index[item.name.lower()] = primary_id
            for variant_id in item.variant_ids:
                previous = primary_by_id.get(variant_id)
                if previous is not None and previous != primary_id:
                    log.debug("Item id %d shared by %d and %d, mapping to %d",
                              variant_id, previous, primary_id, primary_id)
                primary_by_id[variant_id] = primary_id
            primary_by_id.setdefault(primary_id, primary_id)

        derived_by_id: dict[int, DerivedItem] = {}
        for d in derived_items.values():
            for iid in d.item_ids:
                derived_by_id[iid] = d

        self.trackables = items
        self.derived = derived_items
        self.name_index = name_index
        self.primary_by_id = primary_by_id
        self.derived_by_id = derived_by_id

    # -- Lookups ---------------------------------------------------------

    def get(self, primary_id: int) -> TrackableItem | None:
        """Look up a trackable item by primary id."""
        return self.trackables.get(primary_id)

    def is_trackable(self, primary_id: int) -> bool:
        return primary_id in self.trackables

    def primary_id_for(self, iid: int) -> int | None:
        """Map any known trackable id (primary or variant) to its primary id."""
        return self.primary_by_id.get(iid)

    def derived_for(self, iid: int) -> DerivedItem | None:
        """Return the derived item governing *iid*, if any."""
        return self.derived_by_id.get(iid)

    def find_by_name(self, name: str) -> int | None:
        """Case-insensitive name lookup.  Returns the primary id or None."""
        return self.name_index.get(name.strip().lower())

    def name_of(self, primary_id: int) -> str:
        item = self.trackables.get(primary_id)
        return item.name if item else "Unknown"

    def is_known(self, iid: int) -> bool:
        """True if *iid* appears in any index (trackable or derived)."""
        return iid in self.primary_by_id or iid in self.derived_by_id

    def __len__(self) -> int:
        return len(self.trackables)
