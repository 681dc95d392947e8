"""REST API — FastAPI application the host application talks to.

The host reports unlock events, user edits and session changes here,
and asks whether an item is currently permitted.

Usage::

    from unlockgate.network.rest_api import create_app

    app = create_app(services)
    # Serve with uvicorn
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TYPE_CHECKING

from fastapi import FastAPI, HTTPException

from unlockgate.models.availability import TransitionReport
from unlockgate.network.rest_models import (
    ConfigPatch,
    ItemStatusResponse,
    LedgerEntry,
    LedgerResponse,
    LockedActionRequest,
    LockedActionResponse,
    MutationResponse,
    ReconcileRequest,
    ResetRequest,
    SessionRequest,
    SessionResponse,
    UnlockByNameRequest,
    UnlockRequest,
)
from unlockgate.util.events import NoticeIssued
from unlockgate.util.notices import locked_notice, parse_unlock_message

if TYPE_CHECKING:
    from unlockgate.main import Services

log = logging.getLogger(__name__)


def create_app(services: "Services") -> FastAPI:
    """Factory: create and return a configured FastAPI application.

    The ``services`` reference is captured by closure so every endpoint
    can reach the unlock service without global state.
    """
    app = FastAPI(title="Unlock Gate", version="1.0.0")
    unlocks = services.unlock_service
    bus = services.event_bus

    def _require_session() -> str:
        if not unlocks.active:
            raise HTTPException(status_code=409, detail="No active session")
        return unlocks.player

    def _mutate(fn: Callable[[], TransitionReport]) -> dict[str, Any]:
        """Run a mutation and collect the notices it produced."""
        _require_session()
        lines: list[str] = []

        def handler(event: NoticeIssued) -> None:
            lines.append(event.text)

        bus.on(NoticeIssued, handler)
        try:
            report = fn()
        finally:
            bus.off(NoticeIssued, handler)
        return {
            "changed": report.changed,
            "newly_available": list(report.newly_available),
            "notices": lines,
        }

    def _restricted(action: str) -> bool:
        cfg = unlocks.config
        if action == "buy":
            return cfg.restrict_grand_exchange
        if action == "withdraw":
            return cfg.restrict_bank_withdraw
        return cfg.restrict_item_usage

    # =================================================================
    # Session
    # =================================================================

    @app.post("/api/session", response_model=SessionResponse)
    async def start_session(body: SessionRequest) -> dict[str, Any]:
        ledger = await services.ledger_store.load(body.player)
        unlocks.start_session(body.player, ledger)
        return {
            "player": body.player,
            "unlocked": unlocks.unlocked_count(),
            "total": unlocks.total_trackable(),
            "needs_sync": unlocks.needs_sync_reminder,
        }

    @app.delete("/api/session")
    async def end_session() -> dict[str, Any]:
        player = unlocks.player
        unlocks.end_session()
        return {"ended": player is not None}

    # =================================================================
    # Item queries
    # =================================================================

    @app.get("/api/items/{iid}", response_model=ItemStatusResponse)
    async def item_status(iid: int) -> dict[str, Any]:
        available = unlocks.is_available(iid)
        return {
            "iid": iid,
            "available": available,
            "missing": [] if available else unlocks.explain_missing(iid),
        }

    @app.post("/api/items/{iid}/check", response_model=LockedActionResponse)
    async def check_action(iid: int, body: LockedActionRequest) -> dict[str, Any]:
        blocked = _restricted(body.action) and unlocks.is_locked(iid)
        lines: list[str] = []
        if blocked:
            lines = locked_notice(body.action, body.item_name or "Unknown item",
                                  unlocks.explain_missing(iid))
        return {"iid": iid, "blocked": blocked, "lines": lines}

    # =================================================================
    # Mutations
    # =================================================================

    @app.post("/api/items/{iid}/unlock", response_model=MutationResponse)
    async def unlock_item(iid: int, body: UnlockRequest) -> dict[str, Any]:
        return _mutate(lambda: unlocks.unlock(iid, body.manual))

    @app.post("/api/items/{iid}/lock", response_model=MutationResponse)
    async def lock_item(iid: int) -> dict[str, Any]:
        return _mutate(lambda: unlocks.lock(iid))

    @app.post("/api/unlocks/by-name", response_model=MutationResponse)
    async def unlock_by_name(body: UnlockByNameRequest) -> dict[str, Any]:
        name = body.name
        if name is None and body.message is not None:
            name = parse_unlock_message(body.message)
        if not name:
            raise HTTPException(status_code=422, detail="No item name given")
        return _mutate(lambda: unlocks.unlock_by_name(name, body.manual))

    @app.post("/api/unlocks/reconcile", response_model=MutationResponse)
    async def reconcile(body: ReconcileRequest) -> dict[str, Any]:
        entries = [(e.iid, e.obtained) for e in body.entries]
        return _mutate(lambda: unlocks.reconcile_page(entries))

    @app.post("/api/ledger/reset", response_model=MutationResponse)
    async def reset(body: ResetRequest) -> dict[str, Any]:
        if body.manual_only:
            return _mutate(unlocks.reset_manual_overrides)
        return _mutate(unlocks.reset_all)

    # =================================================================
    # Ledger / config
    # =================================================================

    @app.get("/api/ledger", response_model=LedgerResponse)
    async def get_ledger(search: str = "") -> dict[str, Any]:
        player = _require_session()
        ledger = unlocks.ledger()
        return {
            "player": player,
            "unlocked": len(ledger.unlocked),
            "total": unlocks.total_trackable(),
            "manually_added": sorted(ledger.manually_added),
            "manually_locked": sorted(ledger.manually_locked),
            "items": [LedgerEntry(iid=iid, name=name)
                      for iid, name in unlocks.unlocked_listing(search)],
        }

    @app.get("/api/config")
    async def get_config() -> dict[str, Any]:
        return unlocks.config.as_dict()

    @app.patch("/api/config")
    async def patch_config(body: ConfigPatch) -> dict[str, Any]:
        changes = body.model_dump(exclude_none=True)
        return unlocks.update_config(**changes).as_dict()

    return app
