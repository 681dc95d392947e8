"""Catalog loader — parses the item catalog into a CatalogStore.

Supports two modes:
  1. Single file with both sections (``catalog.yaml``).  JSON documents
     are accepted as well since YAML is a superset of JSON.
  2. Directory with one file per section: ``trackable_items.yaml`` and
     ``derived_items.yaml``.

Document shape::

    trackable_items:
      11840:
        name: Dragon boots
        tabs: ["Bosses/Spinolyp"]
        all_ids: [11840]
        craftable_from: []          # list of AND-lists, OR between them
    derived_items:
      Primordial boots:
        item_ids: [13239]
        clog_dependencies: [13231, 11840]

``collectionLogItems`` / ``derivedItems`` are accepted as section names.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from unlockgate.engine.catalog_store import CatalogStore
from unlockgate.models.items import DerivedItem, TrackableItem
from unlockgate.util.errors import DataError

log = logging.getLogger(__name__)

# Section key → accepted aliases, in lookup order.
_SECTIONS = {
    "trackable_items": ("trackable_items", "collectionLogItems"),
    "derived_items": ("derived_items", "derivedItems"),
}


def _as_int(value: Any, what: str) -> int:
    if isinstance(value, bool):
        raise DataError(f"{what}: expected an integer id, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise DataError(f"{what}: expected an integer id, got {value!r}") from None


def _as_int_list(value: Any, what: str) -> list[int]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise DataError(f"{what}: expected a list, got {type(value).__name__}")
    return [_as_int(v, what) for v in value]


def _dedupe(ids: list[int]) -> tuple[int, ...]:
    """Drop repeated ids, keeping declaration order."""
    return tuple(dict.fromkeys(ids))


def _parse_trackable(key: Any, attrs: Any) -> TrackableItem:
    primary_id = _as_int(key, "trackable item key")
    if not isinstance(attrs, dict):
        raise DataError(f"trackable item {primary_id}: expected a mapping")
    where = f"trackable item {primary_id}"

    name = attrs.get("name")
    if not name:
        raise DataError(f"{where}: missing name")

    tabs = attrs.get("tabs") or []
    if not isinstance(tabs, list):
        raise DataError(f"{where}: tabs must be a list")

    raw_ids = attrs.get("all_ids", attrs.get("variant_ids"))
    variants = frozenset(_as_int_list(raw_ids, f"{where} all_ids")) - {primary_id}

    raw_recipes = attrs.get("craftable_from", attrs.get("recipes")) or []
    if not isinstance(raw_recipes, list):
        raise DataError(f"{where}: craftable_from must be a list of lists")
    recipes = tuple(
        _dedupe(_as_int_list(recipe, f"{where} recipe"))
        for recipe in raw_recipes
    )
    if any(not recipe for recipe in recipes):
        raise DataError(f"{where}: empty recipe")

    return TrackableItem(
        primary_id=primary_id,
        name=str(name),
        tabs=tuple(str(t) for t in tabs),
        variant_ids=variants,
        recipes=recipes,
    )


def _parse_derived(key: Any, attrs: Any) -> DerivedItem:
    if not isinstance(attrs, dict):
        raise DataError(f"derived item {key!r}: expected a mapping")
    where = f"derived item {key!r}"
    raw_deps = attrs.get("clog_dependencies", attrs.get("dependencies"))
    return DerivedItem(
        name=str(attrs.get("name") or key),
        item_ids=_dedupe(_as_int_list(attrs.get("item_ids"), f"{where} item_ids")),
        dependencies=_dedupe(_as_int_list(raw_deps, f"{where} dependencies")),
    )


def _section(data: dict, key: str) -> dict:
    for alias in _SECTIONS[key]:
        if alias in data:
            section = data[alias] or {}
            if not isinstance(section, dict):
                raise DataError(f"section {alias!r} must be a mapping")
            return section
    return {}


def _read_document(path: Path) -> Any:
    try:
        with path.open(encoding="utf-8") as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        raise DataError(f"catalog source not found: {path}") from None
    except (OSError, yaml.YAMLError) as e:
        raise DataError(f"catalog source {path} could not be parsed: {e}") from e


def parse_catalog(data: Any) -> CatalogStore:
    """Build a CatalogStore from an already-parsed document."""
    if not isinstance(data, dict):
        raise DataError("catalog document must be a mapping")
    trackables = [_parse_trackable(k, v) for k, v in _section(data, "trackable_items").items()]
    derived = [_parse_derived(k, v) for k, v in _section(data, "derived_items").items()]
    store = CatalogStore()
    store.load(trackables, derived)
    return store


def load_catalog(path: str | Path = "config/catalog.yaml") -> CatalogStore:
    """Load the item catalog from YAML/JSON file(s).

    Args:
        path: Either a single catalog file or a directory holding
              ``trackable_items.yaml`` and ``derived_items.yaml``.

    Returns:
        A fully indexed, read-only CatalogStore.

    Raises:
        DataError: The source is absent, malformed, or references
            undefined trackable items.
    """
    path = Path(path)

    if path.is_dir():
        # ── Per-section files mode ─────────────────────────
        data: dict[str, Any] = {}
        for key in _SECTIONS:
            section_file = path / f"{key}.yaml"
            if section_file.exists():
                data[key] = _read_document(section_file)
        if not data:
            raise DataError(f"no catalog files found in {path}")
    else:
        # ── Single-file mode ───────────────────────────────
        data = _read_document(path)

    store = parse_catalog(data)
    log.info("Loaded catalog from %s: %d trackable items (%d id mappings), "
             "%d derived items (%d id mappings)",
             path, len(store.trackables), len(store.primary_by_id),
             len(store.derived), len(store.derived_by_id))
    return store


def load_catalog_or_empty(path: str | Path = "config/catalog.yaml") -> CatalogStore:
    """Like :func:`load_catalog` but degrades to an empty catalog on failure.

    With an empty catalog nothing is restricted, so the host keeps working.
    """
    try:
        return load_catalog(path)
    except DataError:
        log.exception("Failed to load catalog from %s, continuing with an empty catalog", path)
        return CatalogStore()
