"""Unlock service — owns a player's ledger and its availability snapshot.

Responsibilities:
- Session lifecycle (install a loaded ledger, clear it on logout)
- Ledger mutations: unlock, lock, resets, page reconciliation
- Full snapshot recompute after every mutation or config change
- Reporting derived items that became available
- Handing the ledger to the persistence callback after every change
- Publishing events and notices on the event bus

Mutations run under one lock and publish the new snapshot with a single
assignment, so queries from other threads always see a complete
snapshot.  No I/O happens here; persistence is a callback.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, Iterable, Optional

if TYPE_CHECKING:
    from unlockgate.engine.catalog_store import CatalogStore
    from unlockgate.util.events import EventBus

from unlockgate.engine.resolver import AvailabilityResolver
from unlockgate.loaders.config_loader import RESOLUTION_FIELDS, RestrictionConfig
from unlockgate.models.availability import (
    EMPTY_SNAPSHOT,
    AvailabilitySnapshot,
    TransitionReport,
)
from unlockgate.models.ledger import Ledger
from unlockgate.util import notices
from unlockgate.util.events import (
    DerivedItemsAvailable,
    ItemLocked,
    ItemUnlocked,
    LedgerReset,
    NoticeIssued,
    PageReconciled,
)

log = logging.getLogger(__name__)

# Called with (player, ledger copy) after every state change.
PersistCallback = Callable[[str, Ledger], None]


class UnlockService:
    """Service for one player's unlock state.

    Args:
        catalog: Shared read-only catalog.
        event_bus: Event bus for notifications.
        config: Restriction settings (defaults if omitted).
        persist: Invoked with ``(player, ledger_copy)`` after each change.
            Must not raise; failures are the callback's to log.
    """

    def __init__(self, catalog: CatalogStore, event_bus: EventBus,
                 config: RestrictionConfig | None = None,
                 persist: PersistCallback | None = None) -> None:
        self._catalog = catalog
        self._resolver = AvailabilityResolver(catalog)
        self._events = event_bus
        self._config = config or RestrictionConfig()
        self._persist = persist
        self._lock = threading.RLock()

        self._player: Optional[str] = None
        self._ledger = Ledger()
        self._snapshot: AvailabilitySnapshot = EMPTY_SNAPSHOT

    # -- Session ---------------------------------------------------------

    @property
    def player(self) -> Optional[str]:
        return self._player

    @property
    def active(self) -> bool:
        return self._player is not None

    @property
    def config(self) -> RestrictionConfig:
        return self._config

    @property
    def snapshot(self) -> AvailabilitySnapshot:
        """Current availability snapshot (immutable)."""
        return self._snapshot

    @property
    def resolver(self) -> AvailabilityResolver:
        return self._resolver

    def start_session(self, player: str, ledger: Ledger | None = None) -> None:
        """Install a player's loaded ledger and compute availability."""
        with self._lock:
            self._player = player
            self._ledger = ledger.copy() if ledger is not None else Ledger()
            self._ledger.normalize()
            self._snapshot = self._recompute()
        log.info("Session started for %s: %d unlocked (%d manual, %d locked)",
                 player, len(self._ledger.unlocked), len(self._ledger.manually_added),
                 len(self._ledger.manually_locked))
        if self.needs_sync_reminder:
            self._notice(notices.sync_reminder())

    def end_session(self) -> None:
        """Forget the in-memory ledger without persisting it."""
        with self._lock:
            player = self._player
            self._player = None
            self._ledger = Ledger()
            self._snapshot = EMPTY_SNAPSHOT
        if player is not None:
            log.info("Session ended for %s", player)

    @property
    def needs_sync_reminder(self) -> bool:
        """True while a session is active with nothing unlocked."""
        return self.active and not self._ledger.unlocked

    # -- Configuration ---------------------------------------------------

    def update_config(self, **changes) -> RestrictionConfig:
        """Apply flag changes and recompute if resolution is affected."""
        with self._lock:
            old = self._config
            self._config = old.with_changes(**changes)
            changed = {k for k in changes if getattr(old, k, None) != getattr(self._config, k, None)}
            if changed:
                log.info("Config changed: %s", ", ".join(sorted(changed)))
            if changed & RESOLUTION_FIELDS and self.active:
                self._snapshot = self._recompute()
            return self._config

    # -- Mutations -------------------------------------------------------

    def unlock(self, iid: int, manual: bool = False) -> TransitionReport:
        """Unlock a trackable item by primary id.

        Unknown ids and already unlocked items report no change.
        """
        item = self._catalog.get(iid)
        if item is None:
            return self._unchanged()

        report = self._apply(lambda ledger: ledger.unlock(iid, manual))
        if report.changed:
            log.info("Unlocked item: %s (ID: %d)%s", item.name, iid, " [manual]" if manual else "")
            self._events.emit(ItemUnlocked(player=self._player, iid=iid, name=item.name, manual=manual))
            if self._config.chat_message_on_unlock:
                self._notice(notices.unlocked_notice(item.name))
            self._announce(report)
        return report

    def unlock_by_name(self, name: str, manual: bool = False) -> TransitionReport:
        """Unlock a trackable item by its display name (case-insensitive)."""
        iid = self._catalog.find_by_name(name)
        if iid is None:
            log.warning("Could not find item ID for unlocked item: %s", name)
            return self._unchanged()
        return self.unlock(iid, manual)

    def lock(self, iid: int) -> TransitionReport:
        """Lock a currently unlocked item."""
        report = self._apply(lambda ledger: ledger.lock(iid))
        if report.changed:
            name = self._catalog.name_of(iid)
            log.info("Locked item: %s (ID: %d)", name, iid)
            self._events.emit(ItemLocked(player=self._player, iid=iid, name=name))
        return report

    def reset_all(self) -> TransitionReport:
        """Clear every unlock and override."""
        counts: list[int] = []

        def mutate(ledger: Ledger) -> bool:
            counts.append(len(ledger.unlocked))
            ledger.reset_all()
            return True

        report = self._apply(mutate)
        if report.changed:
            cleared = counts[0]
            log.info("Reset all unlocks. Cleared %d items.", cleared)
            self._events.emit(LedgerReset(player=self._player, manual_only=False,
                                          restored=0, removed=cleared))
        return report

    def reset_manual_overrides(self) -> TransitionReport:
        """Undo manual locks and manual additions."""
        counts: list[int] = []

        def mutate(ledger: Ledger) -> bool:
            counts.extend(ledger.reset_manual_overrides())
            return True

        report = self._apply(mutate)
        if report.changed:
            restored, removed = counts
            log.info("Reset manual changes. Re-added %d locked items, removed %d manual additions.",
                     restored, removed)
            self._events.emit(LedgerReset(player=self._player, manual_only=True,
                                          restored=restored, removed=removed))
            self._announce(report)
        return report

    def reconcile_page(self, entries: Iterable[tuple[int, bool]]) -> TransitionReport:
        """Merge one observed page of ``(iid, obtained)`` entries.

        Ids outside the catalog are ignored.
        """
        known = [(iid, obtained) for iid, obtained in entries if self._catalog.is_trackable(iid)]
        counts: list[int] = []

        def mutate(ledger: Ledger) -> bool:
            counts.extend(ledger.reconcile(known))
            return any(counts)

        report = self._apply(mutate)
        if report.changed:
            new_unlocks, migrated, confirmed = counts
            if new_unlocks:
                log.info("Scanned page, found %d new unlocks (total: %d)",
                         new_unlocks, len(self._ledger.unlocked))
            if migrated:
                log.info("Migrated %d unlocked items to manual unlocks", migrated)
            if confirmed:
                log.info("Confirmed %d manual unlocks as real", confirmed)
            self._events.emit(PageReconciled(player=self._player, new_unlocks=new_unlocks,
                                             migrated=migrated, confirmed=confirmed))
            self._announce(report)
        return report

    def _apply(self, mutation: Callable[[Ledger], bool]) -> TransitionReport:
        """Run a ledger mutation, recompute, persist and diff derived items."""
        with self._lock:
            if not self.active:
                return self._unchanged()
            before = self._snapshot
            if not mutation(self._ledger):
                return self._unchanged()
            after = self._recompute()
            self._snapshot = after
            player = self._player
            ledger_copy = self._ledger.copy()

        if self._persist is not None:
            self._persist(player, ledger_copy)

        return TransitionReport(
            changed=True,
            newly_available=self._newly_available(before, after),
            snapshot=after,
        )

    def _newly_available(self, before: AvailabilitySnapshot,
                         after: AvailabilitySnapshot) -> tuple[str, ...]:
        names = [
            derived.name
            for derived in self._catalog.derived.values()
            if derived.item_ids
            and derived.item_ids[0] in after.available_ids
            and derived.item_ids[0] not in before.available_ids
        ]
        return tuple(sorted(names, key=str.lower))

    def _recompute(self) -> AvailabilitySnapshot:
        return self._resolver.compute_snapshot(self._ledger.unlocked,
                                               self._config.effective_free_tabs)

    def _unchanged(self) -> TransitionReport:
        return TransitionReport(changed=False, snapshot=self._snapshot)

    def _announce(self, report: TransitionReport) -> None:
        if not report.newly_available:
            return
        self._events.emit(DerivedItemsAvailable(player=self._player, names=report.newly_available))
        if self._config.show_newly_available:
            text = notices.newly_available_notice(report.newly_available,
                                                  self._config.newly_available_preview)
            if text:
                self._notice(text)

    def _notice(self, text: str) -> None:
        self._events.emit(NoticeIssued(player=self._player, text=text))

    # -- Queries ---------------------------------------------------------

    def is_available(self, iid: int) -> bool:
        """Whether any item id is currently permitted (unknown ids are)."""
        return self._resolver.is_available(iid, self._snapshot)

    def is_locked(self, iid: int) -> bool:
        return not self.is_available(iid)

    def is_effectively_unlocked(self, primary_id: int) -> bool:
        with self._lock:
            unlocked = frozenset(self._ledger.unlocked)
        return self._resolver.is_effectively_unlocked(primary_id, unlocked,
                                                      self._config.effective_free_tabs)

    def is_unlocked(self, primary_id: int) -> bool:
        """Whether the ledger directly holds *primary_id* (listing view)."""
        return self._resolver.is_directly_unlocked(primary_id, self._ledger.unlocked)

    def explain_missing(self, iid: int) -> list[str]:
        """Names of the trackable items still blocking *iid*."""
        with self._lock:
            unlocked = frozenset(self._ledger.unlocked)
        return self._resolver.explain_missing(iid, unlocked, self._config.effective_free_tabs)

    def ledger(self) -> Ledger:
        """Defensive copy of the current ledger."""
        with self._lock:
            return self._ledger.copy()

    def unlocked_items(self) -> set[int]:
        """Defensive copy of the directly unlocked ids."""
        with self._lock:
            return set(self._ledger.unlocked)

    def unlocked_count(self) -> int:
        return len(self._ledger.unlocked)

    def total_trackable(self) -> int:
        return len(self._catalog)

    def unlocked_listing(self, search: str = "") -> list[tuple[int, str]]:
        """Directly unlocked ``(id, name)`` pairs sorted by name.

        Optionally filtered by a case-insensitive substring of the name.
        """
        needle = search.strip().lower()
        entries = []
        for iid in self.unlocked_items():
            item = self._catalog.get(iid)
            if item is None:
                continue
            if needle and needle not in item.name.lower():
                continue
            entries.append((iid, item.name))
        entries.sort(key=lambda e: e[1].lower())
        return entries
