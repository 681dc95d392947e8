"""Unlock gate entry point.

Initializes all components and serves the REST API:
1. Load configuration (restriction flags, item catalog)
2. Initialize persistence layer (key/value database, ledger store)
3. Create services (event bus, unlock service)
4. Wire up event handlers
5. Serve the REST API until shutdown

Usage:
    python -m unlockgate.main [--config config/unlockgate.yaml]
    # or via entry point:
    unlockgate
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass, field
from typing import Optional

from unlockgate.engine.catalog_store import CatalogStore
from unlockgate.engine.unlock_service import UnlockService
from unlockgate.loaders.catalog_loader import load_catalog_or_empty
from unlockgate.loaders.config_loader import DEFAULT_CONFIG_PATH, RestrictionConfig, load_config
from unlockgate.persistence.database import Database
from unlockgate.persistence.ledger_store import LedgerStore
from unlockgate.util.events import (
    DerivedItemsAvailable,
    EventBus,
    LedgerReset,
    NoticeIssued,
)

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Container for all loaded configuration
# ---------------------------------------------------------------------------


@dataclass
class Configuration:
    """Holds all data loaded from config files."""

    settings: RestrictionConfig = field(default_factory=RestrictionConfig)
    catalog: CatalogStore = field(default_factory=CatalogStore)


# ---------------------------------------------------------------------------
# Container for all services (makes passing around easier)
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Holds references to all services."""

    config: Optional[RestrictionConfig] = None
    catalog: Optional[CatalogStore] = None
    event_bus: Optional[EventBus] = None
    unlock_service: Optional[UnlockService] = None
    database: Optional[Database] = None
    ledger_store: Optional[LedgerStore] = None


# ===================================================================
# 1. Load configuration
# ===================================================================


def load_configuration(config_path: str = DEFAULT_CONFIG_PATH) -> Configuration:
    """Load restriction flags and the item catalog.

    A broken catalog does not stop startup: the catalog is left empty,
    which restricts nothing.
    """
    log.info("Loading configuration …")
    settings = load_config(config_path)
    catalog = load_catalog_or_empty(settings.catalog_path)
    log.info("  catalog:      %d trackable, %d derived items from %s",
             len(catalog.trackables), len(catalog.derived), settings.catalog_path)
    return Configuration(settings=settings, catalog=catalog)


# ===================================================================
# 2. Initialize persistence layer
# ===================================================================


async def init_persistence(db_path: str) -> tuple[Database, LedgerStore]:
    """Open the key/value database and wrap it in a ledger store."""
    log.info("Initializing persistence …")
    database = Database(db_path)
    await database.connect()
    log.info("  database:     connected (%s)", db_path)
    return database, LedgerStore(database)


# ===================================================================
# 3. Create services
# ===================================================================


def create_services(config: Configuration, database: Database,
                    ledger_store: LedgerStore) -> Services:
    """Instantiate all services with proper dependency injection."""
    log.info("Creating services …")
    event_bus = EventBus()
    unlock_service = UnlockService(
        config.catalog,
        event_bus,
        config.settings,
        persist=ledger_store.schedule_save,
    )
    log.info("  all services created")
    return Services(
        config=config.settings,
        catalog=config.catalog,
        event_bus=event_bus,
        unlock_service=unlock_service,
        database=database,
        ledger_store=ledger_store,
    )


# ===================================================================
# 4. Wire up event handlers
# ===================================================================


def wire_events(services: Services) -> None:
    """Register event handlers on the EventBus."""
    log.info("Wiring event handlers …")
    bus = services.event_bus

    bus.on(NoticeIssued, lambda evt: log.info("[%s] %s", evt.player, evt.text))
    bus.on(DerivedItemsAvailable, lambda evt: log.debug(
        "[%s] %d derived items became available", evt.player, len(evt.names)))
    bus.on(LedgerReset, lambda evt: log.debug(
        "[%s] ledger reset (manual_only=%s)", evt.player, evt.manual_only))

    log.info("  event handlers registered")


# ===================================================================
# 5. Serve
# ===================================================================


async def serve(services: Services) -> None:
    """Serve the REST API until shutdown, then flush and close."""
    from unlockgate.network.rest_api import create_app
    import uvicorn

    settings = services.config
    app = create_app(services)
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=settings.rest_host,
        port=settings.rest_port,
        log_level="info",
        access_log=False,
    ))
    log.info("REST API listening on http://%s:%d", settings.rest_host, settings.rest_port)
    try:
        await server.serve()
    finally:
        log.info("Shutting down …")
        await services.ledger_store.flush()
        await services.database.close()
        log.info("  database closed")
        log.info("  goodbye")


# ===================================================================
# Entry points
# ===================================================================


async def _start(config_path: str = DEFAULT_CONFIG_PATH) -> None:
    """Initialize and run all components."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    log.info("=== Unlock gate starting ===")

    config = load_configuration(config_path)
    database, ledger_store = await init_persistence(config.settings.db_path)
    services = create_services(config, database, ledger_store)
    wire_events(services)
    await serve(services)


def main() -> None:
    """Entry point.

    Supports command-line arguments:
        --config <path>  Use a custom config file (default: config/unlockgate.yaml)
    """
    config_path = DEFAULT_CONFIG_PATH

    if "--config" in sys.argv:
        idx = sys.argv.index("--config")
        if idx + 1 >= len(sys.argv):
            print("Error: --config requires an argument", file=sys.stderr)
            sys.exit(1)
        config_path = sys.argv[idx + 1]

    asyncio.run(_start(config_path=config_path))


if __name__ == "__main__":
    main()
