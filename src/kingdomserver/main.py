"""Game server entry point.

Initializes all components and starts the asyncio event loop:
1. Load configuration (game constants, static tables)
2. Initialize persistence layer (database)
3. Create services (user, bank, auth, turn loop)
4. Wire event handlers
5. Start the REST API
6. Start the turn loop

Usage:
    python -m kingdomserver.main [--config-dir config] [--db kingdom.db]
    # or via entry point:
    kingdomserver
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from dataclasses import dataclass
from typing import Optional

from kingdomserver.engine.bank_service import BankService
from kingdomserver.engine.catalog import GameCatalog
from kingdomserver.engine.turn_loop import TurnLoop
from kingdomserver.engine.user_service import UserService
from kingdomserver.loaders.catalog_loader import load_catalog
from kingdomserver.loaders.game_config_loader import GameConfig, load_game_config
from kingdomserver.network.auth import AuthService
from kingdomserver.network.jwt_auth import set_token_lifetime
from kingdomserver.persistence.database import Database
from kingdomserver.util.events import (
    EventBus,
    FortificationChanged,
    GoldTransferred,
    TurnCompleted,
    UnitsTrained,
)

log = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = "config"

# ---------------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------------


@dataclass
class Configuration:
    """Holds all data loaded from config files."""

    game: GameConfig
    catalog: GameCatalog


@dataclass
class Services:
    """Holds references to all services (makes passing around easier)."""

    game_config: Optional[GameConfig] = None
    catalog: Optional[GameCatalog] = None
    event_bus: Optional[EventBus] = None
    database: Optional[Database] = None
    user_service: Optional[UserService] = None
    bank_service: Optional[BankService] = None
    auth_service: Optional[AuthService] = None
    turn_loop: Optional[TurnLoop] = None


# ===================================================================
# 1. Load configuration
# ===================================================================


def load_configuration(config_dir: str = DEFAULT_CONFIG_DIR) -> Configuration:
    """Load game constants and static tables from ``config_dir``."""
    log.info("Loading configuration …")
    game = load_game_config(os.path.join(config_dir, "game.yaml"))
    catalog = load_catalog(config_dir)
    if catalog.fortification(game.starting_fort_level) is None:
        raise ValueError(f"starting_fort_level {game.starting_fort_level} has no fortification")
    return Configuration(game=game, catalog=catalog)


# ===================================================================
# 2. Initialize persistence layer
# ===================================================================


async def init_persistence(db_path: str) -> Database:
    """Open the database (tables are created on first connect)."""
    log.info("Initializing persistence …")
    database = Database(db_path)
    await database.connect()
    return database


# ===================================================================
# 3. Create services
# ===================================================================


def create_services(config: Configuration, database: Database) -> Services:
    """Instantiate all services with proper dependency injection.

    Wiring order matters: services that are injected into others are
    created first.
    """
    log.info("Creating services …")
    gc = config.game
    event_bus = EventBus()
    user_service = UserService(database, config.catalog, event_bus, gc)
    bank_service = BankService(user_service, database, event_bus)
    auth_service = AuthService(database, config.catalog, gc)
    turn_loop = TurnLoop(event_bus, user_service, gc)
    set_token_lifetime(gc.token_lifetime_hours)
    log.info("  all services created")

    return Services(
        game_config=gc,
        catalog=config.catalog,
        event_bus=event_bus,
        database=database,
        user_service=user_service,
        bank_service=bank_service,
        auth_service=auth_service,
        turn_loop=turn_loop,
    )


# ===================================================================
# 4. Wire up event handlers
# ===================================================================


def wire_events(services: Services) -> None:
    """Register event handlers on the bus.

    There are no cross-service reactions yet; every economy event goes
    to the audit log.
    """
    audit = logging.getLogger("kingdomserver.audit")
    bus = services.event_bus
    for event_type in (UnitsTrained, GoldTransferred, FortificationChanged, TurnCompleted):
        bus.on(event_type, lambda evt: audit.info("%r", evt))
    log.info("  event handlers registered")


# ===================================================================
# 5. Start REST API
# ===================================================================


async def start_network(services: Services):
    """Start the FastAPI app via uvicorn as a background task."""
    from kingdomserver.network.rest_api import create_app
    import uvicorn

    rest_app = create_app(services)
    port = services.game_config.rest_port
    config = uvicorn.Config(
        rest_app,
        host="0.0.0.0",
        port=port,
        log_level="info",
        access_log=False,
    )
    rest_server = uvicorn.Server(config)
    asyncio.create_task(rest_server.serve())
    log.info("  REST API listening on http://0.0.0.0:%d", port)
    return rest_server


# ===================================================================
# 6. Turn loop
# ===================================================================


async def run_turn_loop(services: Services, rest_server) -> None:
    """Run the turn loop until SIGINT / SIGTERM, then shut everything down."""
    loop = asyncio.get_running_loop()

    def _request_shutdown() -> None:
        log.info("Shutdown signal received — stopping …")
        services.turn_loop.stop()
        rest_server.should_exit = True

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_shutdown)

    log.info("  turn loop running (%.0f s per turn)", services.game_config.turn_length_seconds)
    turn_task = asyncio.create_task(services.turn_loop.run())
    while services.turn_loop.is_running:
        await asyncio.sleep(0.5)
    turn_task.cancel()

    log.info("Shutting down …")
    if services.database is not None:
        await services.database.close()
        log.info("  database closed")
    log.info("  goodbye")


# ===================================================================
# Entry points
# ===================================================================


async def _start(config_dir: str, db_path: str | None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    log.info("=== Kingdom server starting ===")

    config = load_configuration(config_dir)
    database = await init_persistence(db_path or config.game.db_path)
    services = create_services(config, database)
    wire_events(services)
    rest_server = await start_network(services)
    await run_turn_loop(services, rest_server)


def main() -> None:
    parser = argparse.ArgumentParser(description="Kingdom game server")
    parser.add_argument("--config-dir", default=DEFAULT_CONFIG_DIR,
                        help="Directory with game.yaml and the table files (default: config)")
    parser.add_argument("--db", default=None,
                        help="SQLite file (default: db_path from game.yaml)")
    args = parser.parse_args()
    asyncio.run(_start(config_dir=args.config_dir, db_path=args.db))


if __name__ == "__main__":
    main()
