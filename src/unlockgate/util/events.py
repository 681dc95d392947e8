"""Typed event bus — decoupled notification of unlock state changes.

The unlock service publishes what happened; whatever renders chat lines,
refreshes a side panel or pushes to a client subscribes here.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, TypeVar, Type

T = TypeVar("T")


# -- Ledger events -------------------------------------------------------

@dataclass(frozen=True)
class ItemUnlocked:
    """A trackable item was added to a player's ledger."""
    player: str
    iid: int
    name: str
    manual: bool


@dataclass(frozen=True)
class ItemLocked:
    """A trackable item was removed from a player's ledger."""
    player: str
    iid: int
    name: str


@dataclass(frozen=True)
class LedgerReset:
    """Unlocks were reset.

    For a full reset ``removed`` is the number of unlocks cleared.  For
    a manual-only reset ``restored`` counts manual locks re-unlocked and
    ``removed`` counts manual additions dropped.
    """
    player: str
    manual_only: bool
    restored: int
    removed: int


@dataclass(frozen=True)
class PageReconciled:
    """An observed achievement page was merged into the ledger."""
    player: str
    new_unlocks: int
    migrated: int
    confirmed: int = 0


# -- Availability events -------------------------------------------------

@dataclass(frozen=True)
class DerivedItemsAvailable:
    """Derived items that became available after a mutation."""
    player: str
    names: tuple[str, ...]


@dataclass(frozen=True)
class NoticeIssued:
    """A user-facing notice line was produced."""
    player: str
    text: str


# -- Event Bus -----------------------------------------------------------

class EventBus:
    """Simple synchronous event bus with typed events.

    Usage:
        bus = EventBus()
        bus.on(ItemUnlocked, lambda e: print(e.name))
        bus.emit(ItemUnlocked(player="zezima", iid=4151, name="Abyssal whip", manual=False))
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def on(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def off(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Unregister a handler."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: object) -> None:
        """Emit an event to all registered handlers."""
        for handler in self._handlers.get(type(event), []):
            handler(event)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
