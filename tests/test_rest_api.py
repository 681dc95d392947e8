"""Tests for the REST API.

Uses httpx AsyncClient with an ASGI transport to test REST endpoints
end-to-end without starting a real server.
"""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from unlockgate.engine.catalog_store import CatalogStore
from unlockgate.engine.unlock_service import UnlockService
from unlockgate.loaders.config_loader import RestrictionConfig
from unlockgate.main import Services
from unlockgate.models.items import DerivedItem, TrackableItem
from unlockgate.models.ledger import Ledger
from unlockgate.network.rest_api import create_app
from unlockgate.persistence.database import Database
from unlockgate.persistence.ledger_store import LedgerStore
from unlockgate.util.events import EventBus


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

PLAYER = "zezima"
WHIP, TENTACLE, RED_HEADBAND = 4151, 12004, 12247


def _make_catalog() -> CatalogStore:
    store = CatalogStore()
    store.load(
        [
            TrackableItem(primary_id=WHIP, name="Abyssal whip", variant_ids=frozenset({20405})),
            TrackableItem(primary_id=TENTACLE, name="Kraken tentacle"),
            TrackableItem(primary_id=RED_HEADBAND, name="Red headband",
                          tabs=("Clues/Easy Treasure Trails",)),
        ],
        [DerivedItem(name="abyssal tentacle", item_ids=(12006,), dependencies=(WHIP, TENTACLE))],
    )
    return store


@pytest.fixture
async def services():
    database = Database(":memory:")
    await database.connect()
    ledger_store = LedgerStore(database)
    catalog = _make_catalog()
    bus = EventBus()
    config = RestrictionConfig()
    svc = Services(
        config=config,
        catalog=catalog,
        event_bus=bus,
        unlock_service=UnlockService(catalog, bus, config, persist=ledger_store.schedule_save),
        database=database,
        ledger_store=ledger_store,
    )
    yield svc
    await ledger_store.flush()
    await database.close()


@pytest.fixture
async def client(services):
    """httpx async client wired to the FastAPI app."""
    transport = ASGITransport(app=create_app(services))
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _start(client: AsyncClient) -> dict:
    resp = await client.post("/api/session", json={"player": PLAYER})
    assert resp.status_code == 200
    return resp.json()


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class TestSession:
    async def test_start_fresh_session(self, client):
        data = await _start(client)
        assert data == {"player": PLAYER, "unlocked": 0, "total": 3, "needs_sync": True}

    async def test_start_session_loads_saved_ledger(self, client, services):
        await services.ledger_store.save(PLAYER, Ledger(unlocked={WHIP}))
        data = await _start(client)
        assert data["unlocked"] == 1
        assert data["needs_sync"] is False

    async def test_blank_player_rejected(self, client):
        resp = await client.post("/api/session", json={"player": ""})
        assert resp.status_code == 422

    async def test_mutation_without_session(self, client):
        resp = await client.post(f"/api/items/{WHIP}/unlock", json={})
        assert resp.status_code == 409

    async def test_end_session(self, client, services):
        await _start(client)
        resp = await client.delete("/api/session")
        assert resp.json() == {"ended": True}
        assert not services.unlock_service.active


# ---------------------------------------------------------------------------
# Item queries
# ---------------------------------------------------------------------------


class TestItems:
    async def test_unknown_item_available(self, client):
        await _start(client)
        resp = await client.get("/api/items/999999")
        assert resp.json() == {"iid": 999999, "available": True, "missing": []}

    async def test_locked_item_explains(self, client):
        await _start(client)
        resp = await client.get("/api/items/12006")
        data = resp.json()
        assert data["available"] is False
        assert data["missing"] == ["Abyssal whip", "Kraken tentacle"]

    async def test_check_action(self, client):
        await _start(client)
        resp = await client.post("/api/items/20405/check",
                                 json={"action": "wield", "item_name": "Abyssal whip"})
        data = resp.json()
        assert data["blocked"] is True
        assert data["lines"] == [
            "Cannot wield Abyssal whip - item is locked!",
            "Clog required: Abyssal whip",
        ]

    async def test_check_action_restriction_disabled(self, client):
        await _start(client)
        await client.patch("/api/config", json={"restrict_grand_exchange": False})
        resp = await client.post("/api/items/20405/check", json={"action": "buy"})
        assert resp.json()["blocked"] is False


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


class TestMutations:
    async def test_unlock_and_persist(self, client, services):
        await _start(client)
        resp = await client.post(f"/api/items/{WHIP}/unlock", json={"manual": True})
        data = resp.json()
        assert data["changed"] is True
        assert data["notices"] == ["Unlocked Abyssal whip"]

        await services.ledger_store.flush()
        saved = await services.ledger_store.load(PLAYER)
        assert saved.unlocked == {WHIP}
        assert saved.manually_added == {WHIP}

    async def test_newly_available(self, client):
        await _start(client)
        await client.post(f"/api/items/{WHIP}/unlock", json={})
        resp = await client.post(f"/api/items/{TENTACLE}/unlock", json={})
        data = resp.json()
        assert data["newly_available"] == ["abyssal tentacle"]
        assert "New items unlocked: Abyssal tentacle" in data["notices"]

    async def test_repeat_unlock_unchanged(self, client):
        await _start(client)
        await client.post(f"/api/items/{WHIP}/unlock", json={})
        resp = await client.post(f"/api/items/{WHIP}/unlock", json={})
        assert resp.json() == {"changed": False, "newly_available": [], "notices": []}

    async def test_lock(self, client):
        await _start(client)
        await client.post(f"/api/items/{WHIP}/unlock", json={})
        resp = await client.post(f"/api/items/{WHIP}/lock")
        assert resp.json()["changed"] is True
        ledger = (await client.get("/api/ledger")).json()
        assert ledger["manually_locked"] == [WHIP]

    async def test_unlock_by_message(self, client):
        await _start(client)
        resp = await client.post("/api/unlocks/by-name", json={
            "message": "New item added to your collection log: <col=ef1020>Kraken tentacle</col>",
        })
        assert resp.json()["changed"] is True

    async def test_unlock_by_name_requires_name(self, client):
        await _start(client)
        resp = await client.post("/api/unlocks/by-name", json={"message": "Oh dear, you are dead!"})
        assert resp.status_code == 422

    async def test_reconcile(self, client):
        await _start(client)
        resp = await client.post("/api/unlocks/reconcile", json={"entries": [
            {"iid": WHIP, "obtained": True},
            {"iid": TENTACLE, "obtained": True},
            {"iid": 999999, "obtained": True},
        ]})
        data = resp.json()
        assert data["changed"] is True
        assert data["newly_available"] == ["abyssal tentacle"]

    async def test_reset_manual_only(self, client):
        await _start(client)
        await client.post(f"/api/items/{WHIP}/unlock", json={"manual": True})
        await client.post(f"/api/items/{TENTACLE}/unlock", json={})
        await client.post("/api/ledger/reset", json={"manual_only": True})
        ledger = (await client.get("/api/ledger")).json()
        assert [i["iid"] for i in ledger["items"]] == [TENTACLE]

    async def test_reset_all(self, client):
        await _start(client)
        await client.post(f"/api/items/{WHIP}/unlock", json={})
        await client.post("/api/ledger/reset", json={})
        ledger = (await client.get("/api/ledger")).json()
        assert ledger["unlocked"] == 0


# ---------------------------------------------------------------------------
# Ledger / config
# ---------------------------------------------------------------------------


class TestLedgerAndConfig:
    async def test_ledger_listing_search(self, client):
        await _start(client)
        await client.post(f"/api/items/{WHIP}/unlock", json={})
        await client.post(f"/api/items/{TENTACLE}/unlock", json={})
        data = (await client.get("/api/ledger", params={"search": "kraken"})).json()
        assert data["unlocked"] == 2
        assert data["total"] == 3
        assert data["items"] == [{"iid": TENTACLE, "name": "Kraken tentacle"}]

    async def test_config_patch_recomputes(self, client):
        await _start(client)
        assert (await client.get(f"/api/items/{RED_HEADBAND}")).json()["available"] is False
        resp = await client.patch("/api/config", json={"restrict_clue_items": False})
        assert resp.json()["restrict_clue_items"] is False
        assert (await client.get(f"/api/items/{RED_HEADBAND}")).json()["available"] is True

    async def test_get_config(self, client):
        data = (await client.get("/api/config")).json()
        assert data["restrict_item_usage"] is True
        assert data["free_tabs"] == []
