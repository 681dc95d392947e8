"""Tests for catalog_loader and CatalogStore — ensures catalogs load and index correctly."""

from pathlib import Path

import pytest

from unlockgate.engine.catalog_store import CatalogStore
from unlockgate.loaders.catalog_loader import load_catalog, load_catalog_or_empty, parse_catalog
from unlockgate.models.items import DerivedItem, TrackableItem
from unlockgate.util.errors import DataError

# Path to the shipped config directory
CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


class TestShippedCatalog:
    """Verify the catalog that ships in config/ loads cleanly."""

    def test_catalog_file_exists(self):
        assert (CONFIG_DIR / "catalog.yaml").exists()

    def test_load_returns_items(self):
        store = load_catalog(CONFIG_DIR / "catalog.yaml")
        assert len(store.trackables) > 0
        assert len(store.derived) > 0

    def test_items_have_names(self):
        store = load_catalog(CONFIG_DIR / "catalog.yaml")
        for item in store.trackables.values():
            assert item.name, f"Item missing name: {item}"

    def test_known_recipe(self):
        store = load_catalog(CONFIG_DIR / "catalog.yaml")
        onyx = store.find_by_name("Onyx")
        assert store.get(onyx).recipes == ((6571,),)


class TestLoadFromSingleFile:

    def test_load_yaml(self, tmp_path):
        f = tmp_path / "catalog.yaml"
        f.write_text(
            "trackable_items:\n"
            "  4151:\n"
            "    name: Abyssal whip\n"
            "    tabs: [Slayer/Abyssal Demons]\n"
            "    all_ids: [4151, 20405]\n"
            "  12004:\n"
            "    name: Kraken tentacle\n"
            "derived_items:\n"
            "  abyssal tentacle:\n"
            "    item_ids: [12006]\n"
            "    clog_dependencies: [4151, 12004]\n"
        )
        store = load_catalog(f)
        whip = store.get(4151)
        assert whip.name == "Abyssal whip"
        assert whip.variant_ids == frozenset({20405})
        assert whip.all_ids == frozenset({4151, 20405})
        assert whip.tabs == ("Slayer/Abyssal Demons",)
        assert store.derived["abyssal tentacle"].dependencies == (4151, 12004)

    def test_load_json_with_camelcase_section_names(self, tmp_path):
        f = tmp_path / "clog_restrictions.json"
        f.write_text(
            '{"collectionLogItems": {"6571": {"name": "Uncut onyx", "all_ids": [6571]},'
            ' "6573": {"name": "Onyx", "craftable_from": [[6571]]}},'
            ' "derivedItems": {"onyx amulet": {"name": "onyx amulet",'
            ' "item_ids": [6581], "clog_dependencies": [6573]}}}'
        )
        store = load_catalog(f)
        assert set(store.trackables) == {6571, 6573}
        assert store.get(6573).recipes == ((6571,),)
        assert store.derived_for(6581).name == "onyx amulet"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(DataError):
            load_catalog(tmp_path / "nonexistent.yaml")

    def test_unparsable_file_raises(self, tmp_path):
        f = tmp_path / "catalog.yaml"
        f.write_text("trackable_items: [unclosed\n")
        with pytest.raises(DataError):
            load_catalog(f)

    def test_empty_file_raises(self, tmp_path):
        f = tmp_path / "catalog.yaml"
        f.write_text("")
        with pytest.raises(DataError):
            load_catalog(f)

    def test_empty_sections(self, tmp_path):
        f = tmp_path / "catalog.yaml"
        f.write_text("trackable_items: {}\nderived_items:\n")
        store = load_catalog(f)
        assert len(store) == 0


class TestLoadFromDirectory:

    def test_load_from_directory(self, tmp_path):
        (tmp_path / "trackable_items.yaml").write_text(
            "11840:\n  name: Dragon boots\n"
            "13231:\n  name: Primordial crystal\n"
        )
        (tmp_path / "derived_items.yaml").write_text(
            "primordial boots:\n  item_ids: [13239]\n  clog_dependencies: [13231, 11840]\n"
        )
        store = load_catalog(tmp_path)
        assert len(store) == 2
        assert store.derived_for(13239).name == "primordial boots"

    def test_partial_sections(self, tmp_path):
        (tmp_path / "trackable_items.yaml").write_text("11840:\n  name: Dragon boots\n")
        store = load_catalog(tmp_path)
        assert len(store) == 1
        assert store.derived == {}

    def test_empty_directory_raises(self, tmp_path):
        with pytest.raises(DataError):
            load_catalog(tmp_path)


class TestValidation:

    @pytest.mark.parametrize("doc", [
        ["not", "a", "mapping"],
        {"trackable_items": ["nope"]},
        {"trackable_items": {"abc": {"name": "Bad key"}}},
        {"trackable_items": {1: {"tabs": []}}},
        {"trackable_items": {1: {"name": "A", "craftable_from": [[]]}}},
        {"trackable_items": {1: {"name": "A", "craftable_from": "2"}}},
        {"trackable_items": {1: {"name": "A", "all_ids": [True]}}},
        {"trackable_items": {1: {"name": "A"}}, "derived_items": {"x": "nope"}},
    ])
    def test_malformed_documents(self, doc):
        with pytest.raises(DataError):
            parse_catalog(doc)

    def test_recipe_references_unknown_item(self):
        doc = {"trackable_items": {1: {"name": "A", "craftable_from": [[2]]}}}
        with pytest.raises(DataError, match="unknown item 2"):
            parse_catalog(doc)

    def test_derived_dependency_references_unknown_item(self):
        doc = {
            "trackable_items": {1: {"name": "A"}},
            "derived_items": {"thing": {"item_ids": [100], "clog_dependencies": [1, 3]}},
        }
        with pytest.raises(DataError, match="unknown item 3"):
            parse_catalog(doc)

    def test_load_or_empty_degrades(self, tmp_path):
        store = load_catalog_or_empty(tmp_path / "missing.yaml")
        assert isinstance(store, CatalogStore)
        assert len(store) == 0
        assert not store.is_known(4151)

    def test_duplicate_ids_dropped_in_order(self):
        doc = {
            "trackable_items": {1: {"name": "A"}, 2: {"name": "B"}},
            "derived_items": {"d": {"item_ids": [9, 8, 9], "clog_dependencies": [2, 1, 2]}},
        }
        store = parse_catalog(doc)
        assert store.derived["d"].item_ids == (9, 8)
        assert store.derived["d"].dependencies == (2, 1)


class TestIndexes:

    def _make_store(self) -> CatalogStore:
        store = CatalogStore()
        store.load(
            [
                TrackableItem(primary_id=4151, name="Abyssal whip", variant_ids=frozenset({20405})),
                TrackableItem(primary_id=12004, name="Kraken tentacle"),
            ],
            [DerivedItem(name="abyssal tentacle", item_ids=(12006, 12007), dependencies=(4151, 12004))],
        )
        return store

    def test_name_index_is_case_insensitive(self):
        store = self._make_store()
        assert store.find_by_name("abyssal WHIP") == 4151
        assert store.find_by_name("  Kraken tentacle ") == 12004
        assert store.find_by_name("Dragon boots") is None

    def test_variant_index(self):
        store = self._make_store()
        assert store.primary_id_for(20405) == 4151
        assert store.primary_id_for(4151) == 4151
        assert store.primary_id_for(12006) is None

    def test_derived_index(self):
        store = self._make_store()
        assert store.derived_for(12006) is store.derived_for(12007)
        assert store.derived_for(4151) is None

    def test_is_known(self):
        store = self._make_store()
        assert store.is_known(20405)
        assert store.is_known(12007)
        assert not store.is_known(999999)

    def test_name_of_unknown(self):
        assert self._make_store().name_of(1) == "Unknown"
