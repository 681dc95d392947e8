"""Restriction configuration — loads tunable flags from config/unlockgate.yaml.

Provides a single ``RestrictionConfig`` dataclass that is loaded once at
startup.  Instances are immutable; a changed flag produces a new config
via :meth:`RestrictionConfig.with_changes`.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/unlockgate.yaml"

# Fields whose change alters which items resolve as free.
RESOLUTION_FIELDS = frozenset({"restrict_clue_items", "clue_tab_marker", "free_tabs"})


@dataclass(frozen=True)
class RestrictionConfig:
    """All tunable restriction and notification settings.

    Every field has a sensible default so the service can start even
    without the file.
    """

    # -- Restrictions ------------------------------------------------
    restrict_grand_exchange: bool = True
    restrict_item_usage: bool = True
    restrict_bank_withdraw: bool = True
    restrict_clue_items: bool = True
    clue_tab_marker: str = "Treasure Trail"
    free_tabs: tuple[str, ...] = ()

    # -- Notifications -----------------------------------------------
    chat_message_on_unlock: bool = True
    show_newly_available: bool = True
    newly_available_preview: int = 3

    # -- Paths -------------------------------------------------------
    catalog_path: str = "config/catalog.yaml"
    db_path: str = "unlockgate.db"

    # -- Network -----------------------------------------------------
    rest_host: str = "127.0.0.1"
    rest_port: int = 8080

    @property
    def effective_free_tabs(self) -> frozenset[str]:
        """Tab markers whose items count as unlocked."""
        tabs = set(self.free_tabs)
        if not self.restrict_clue_items:
            tabs.add(self.clue_tab_marker)
        return frozenset(tabs)

    def with_changes(self, **changes: Any) -> RestrictionConfig:
        """Return a copy with *changes* applied.  Unknown keys are ignored."""
        known = {k: v for k, v in changes.items() if k in _FIELD_NAMES}
        if "free_tabs" in known:
            known["free_tabs"] = tuple(known["free_tabs"] or ())
        return dataclasses.replace(self, **known)

    def as_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["free_tabs"] = list(self.free_tabs)
        return data


_FIELD_NAMES = frozenset(f.name for f in dataclasses.fields(RestrictionConfig))


def load_config(path: str = DEFAULT_CONFIG_PATH) -> RestrictionConfig:
    """Load restriction configuration from a YAML file.

    Missing keys fall back to dataclass defaults.  If the file does not
    exist, a warning is logged and pure defaults are returned.
    """
    p = Path(path)
    if not p.exists():
        log.warning("Config not found at %s, using defaults", p)
        return RestrictionConfig()

    with p.open() as f:
        raw = yaml.safe_load(f) or {}

    log.info("Loaded config from %s (%d keys)", p, len(raw))
    return RestrictionConfig().with_changes(**raw)
