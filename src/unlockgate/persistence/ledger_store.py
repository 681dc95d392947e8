"""Ledger store — saves and restores player ledgers in the key/value store.

Key layout, per player::

    <player>.unlockedItems     JSON array of ints
    <player>.manuallyAdded     JSON array of ints
    <player>.manuallyRemoved   JSON array of ints (the manual locks)

Each key is optional; absent or empty values load as empty sets.
Malformed values are logged and also load as empty sets, so a damaged
store never blocks a session from starting.  Save failures are logged
and reported as ``False`` so the caller can retry.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Iterable

from unlockgate.models.ledger import Ledger
from unlockgate.persistence.database import Database
from unlockgate.util.errors import PersistenceError

log = logging.getLogger(__name__)

UNLOCKED_KEY = "unlockedItems"
MANUALLY_ADDED_KEY = "manuallyAdded"
MANUALLY_LOCKED_KEY = "manuallyRemoved"

_FIELDS = (
    ("unlocked", UNLOCKED_KEY),
    ("manually_added", MANUALLY_ADDED_KEY),
    ("manually_locked", MANUALLY_LOCKED_KEY),
)


def encode_ids(ids: Iterable[int]) -> str:
    """Serialize an id set as a sorted JSON array."""
    return json.dumps(sorted(ids))


def decode_ids(raw: str | None) -> set[int]:
    """Parse a stored JSON array of ints.

    Raises:
        ValueError: The payload is not a JSON array of integers.
    """
    if not raw:
        return set()
    try:
        data = json.loads(raw)
    except RecursionError:
        raise ValueError("array nested too deeply") from None
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array, got {type(data).__name__}")
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in data):
        raise ValueError("array contains non-integer members")
    return set(data)


class LedgerStore:
    """Persistence adapter between ledgers and the key/value database.

    Args:
        database: Connected key/value database.
    """

    def __init__(self, database: Database) -> None:
        self._db = database
        self._pending: set[asyncio.Task] = set()

    @staticmethod
    def key_for(player: str, field_key: str) -> str:
        return f"{player}.{field_key}"

    async def load(self, player: str) -> Ledger:
        """Load a player's ledger.  Never raises."""
        ledger = Ledger()
        for attr, field_key in _FIELDS:
            key = self.key_for(player, field_key)
            try:
                raw = await self._db.get_value(key)
            except PersistenceError:
                log.exception("Failed to read %s, treating as empty", key)
                continue
            try:
                ids = decode_ids(raw)
            except ValueError as e:
                log.warning("Malformed value for %s (%s), treating as empty", key, e)
                continue
            setattr(ledger, attr, ids)

        ledger.normalize()
        log.info("Loaded %d unlocked items (%d manual, %d locked) for player %s",
                 len(ledger.unlocked), len(ledger.manually_added),
                 len(ledger.manually_locked), player)
        return ledger

    async def save(self, player: str, ledger: Ledger) -> bool:
        """Write all three fields.  Returns False (after logging) on failure."""
        try:
            for attr, field_key in _FIELDS:
                await self._db.set_value(self.key_for(player, field_key),
                                         encode_ids(getattr(ledger, attr)))
        except PersistenceError:
            log.exception("Failed to save ledger for %s", player)
            return False
        log.debug("Saved %d unlocked items (%d manual, %d locked) for %s",
                  len(ledger.unlocked), len(ledger.manually_added),
                  len(ledger.manually_locked), player)
        return True

    # -- Fire-and-forget -------------------------------------------------

    def schedule_save(self, player: str, ledger: Ledger) -> None:
        """Save in a background task on the running event loop.

        Suitable as the unlock service's persist callback.  Must be called
        from the event loop thread; without a running loop the save is
        skipped with a warning.  The ledger is copied first, so later
        mutations do not leak into this save.
        """
        snapshot = ledger.copy()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.warning("No running event loop, ledger for %s not saved", player)
            return
        task = loop.create_task(self.save(player, snapshot))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush(self) -> None:
        """Wait for every scheduled save to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
