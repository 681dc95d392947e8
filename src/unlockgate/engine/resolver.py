"""Availability resolver — decides which items a player may use.

Two predicates are kept apart on purpose:

- *directly unlocked*: the id is in the ledger.  Listings shown to the
  player use only this.
- *effectively unlocked*: directly unlocked, in a free tab, or craftable
  through some recipe whose ingredients are all effectively unlocked.
  Every restriction decision uses this.

Recipes may form cycles.  Resolution carries the ids already on the
current path as an immutable ``frozenset`` that each ingredient branch
extends with ``|``; a node met again on its own path is unsatisfiable on
that path.  Sibling branches never see each other's paths, so ruling a
node out on one branch does not rule it out on another.

All functions here are pure: they read the catalog and the given
``unlocked`` set and never mutate anything.
"""

from __future__ import annotations

import logging
from typing import AbstractSet

from unlockgate.engine.catalog_store import CatalogStore
from unlockgate.models.availability import AvailabilitySnapshot

log = logging.getLogger(__name__)

_NO_TABS: frozenset[str] = frozenset()


class AvailabilityResolver:
    """Resolution engine over a read-only catalog.

    Args:
        catalog: Shared catalog store.
    """

    def __init__(self, catalog: CatalogStore) -> None:
        self._catalog = catalog

    @property
    def catalog(self) -> CatalogStore:
        return self._catalog

    # -- Predicates ------------------------------------------------------

    @staticmethod
    def is_directly_unlocked(primary_id: int, unlocked: AbstractSet[int]) -> bool:
        """True only if the ledger holds *primary_id*."""
        return primary_id in unlocked

    def is_effectively_unlocked(
        self,
        primary_id: int,
        unlocked: AbstractSet[int],
        free_tabs: frozenset[str] = _NO_TABS,
    ) -> bool:
        """Check whether a trackable item is usable.

        Args:
            primary_id: Trackable primary id.
            unlocked: Directly unlocked primary ids.
            free_tabs: Tab markers whose items are always satisfied.
        """
        return self._resolve(primary_id, unlocked, free_tabs, frozenset())

    def _resolve(
        self,
        primary_id: int,
        unlocked: AbstractSet[int],
        free_tabs: frozenset[str],
        path: frozenset[int],
    ) -> bool:
        if primary_id in unlocked:
            return True

        item = self._catalog.get(primary_id)
        if item is None:
            return False

        if free_tabs and item.in_tab(free_tabs):
            return True

        if primary_id in path:
            return False
        path = path | {primary_id}

        for recipe in item.recipes:
            if all(self._resolve(ingredient, unlocked, free_tabs, path) for ingredient in recipe):
                return True
        return False

    # -- Closure ---------------------------------------------------------

    def compute_snapshot(
        self,
        unlocked: AbstractSet[int],
        free_tabs: frozenset[str] = _NO_TABS,
    ) -> AvailabilitySnapshot:
        """Recompute the full set of available item ids from scratch."""
        available: set[int] = set()
        effective: dict[int, bool] = {}

        for primary_id, item in self._catalog.trackables.items():
            ok = self.is_effectively_unlocked(primary_id, unlocked, free_tabs)
            effective[primary_id] = ok
            if ok:
                available.update(item.all_ids)

        for derived in self._catalog.derived.values():
            if derived.is_inert:
                continue
            if all(effective.get(dep, False) for dep in derived.dependencies):
                available.update(derived.item_ids)

        log.debug("Recalculated available items: %d total", len(available))
        return AvailabilitySnapshot(available_ids=frozenset(available))

    # -- Queries ---------------------------------------------------------

    def is_available(self, iid: int, snapshot: AvailabilitySnapshot) -> bool:
        """Check whether any item id is permitted.

        Ids the catalog does not know are never restricted.
        """
        if not self._catalog.is_known(iid):
            return True
        return iid in snapshot.available_ids

    def explain_missing(
        self,
        iid: int,
        unlocked: AbstractSet[int],
        free_tabs: frozenset[str] = _NO_TABS,
    ) -> list[str]:
        """Names of the trackable items still blocking *iid*.

        A trackable id yields its own name when it is not effectively
        unlocked.  A derived id yields every dependency that is not
        effectively unlocked, in declaration order.  Anything else
        yields an empty list.
        """
        primary_id = self._catalog.primary_id_for(iid)
        if primary_id is not None:
            if self.is_effectively_unlocked(primary_id, unlocked, free_tabs):
                return []
            return [self._catalog.name_of(primary_id)]

        derived = self._catalog.derived_for(iid)
        if derived is None:
            return []
        return [
            self._catalog.name_of(dep)
            for dep in derived.dependencies
            if not self.is_effectively_unlocked(dep, unlocked, free_tabs)
        ]
