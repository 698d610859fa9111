"""Trade Journal — prop-firm forex journal service.

Main entry point. Wires all components and manages lifecycle.

Startup: load config -> connect DB -> load snapshot -> build store -> start API
Shutdown: stop API -> flush pending writes -> close DB
"""

from __future__ import annotations

import asyncio
import signal

import structlog
from aiohttp import web

from tradejournal.api.server import create_app as create_api_app
from tradejournal.shell.config import Config, load_config
from tradejournal.shell.contract import JournalSettings, NotificationSettings
from tradejournal.shell.database import Database
from tradejournal.shell.snapshot import SnapshotStore
from tradejournal.shell.store import JournalStore
from tradejournal.utils.logging import setup_logging

log = structlog.get_logger()


def default_settings(config: Config) -> JournalSettings:
    """Settings a fresh (or reset) journal starts with."""
    journal = config.journal
    return JournalSettings(
        usd_to_brl_rate=journal.usd_to_brl_rate,
        date_format=journal.date_format,
        notifications=NotificationSettings(
            goal_reached=journal.notifications.goal_reached,
            loss_streak=journal.notifications.loss_streak,
            max_trades_exceeded=journal.notifications.max_trades_exceeded,
        ),
    )


class TradeJournal:
    """Main application — owns the database, the store and the API server."""

    def __init__(self, config: Config | None = None) -> None:
        self._config = config
        self._db: Database | None = None
        self._store: JournalStore | None = None
        self._api_runner: web.AppRunner | None = None
        self._running = False

    @property
    def store(self) -> JournalStore | None:
        return self._store

    async def setup(self) -> None:
        """Bring every component up without blocking."""
        log.info("journal.starting")

        # 1. Config
        if self._config is None:
            self._config = load_config()
            setup_logging(self._config.log_level)
        log.info("config.loaded", db_path=self._config.storage.db_path,
                 api_enabled=self._config.api.enabled)

        # 2. Database
        self._db = Database(self._config.storage.db_path)
        await self._db.connect()

        # 3. Snapshot -> store
        defaults = default_settings(self._config)
        snapshot = SnapshotStore(self._db, self._config.storage.snapshot_key, defaults)
        state = await snapshot.load()
        self._store = JournalStore(state=state, persist=snapshot.save, default_settings=defaults)

        # 4. API server
        if self._config.api.enabled:
            api_app = create_api_app(self._config, self._store)
            self._api_runner = web.AppRunner(api_app)
            await self._api_runner.setup()
            site = web.TCPSite(
                self._api_runner, self._config.api.host, self._config.api.port,
            )
            await site.start()
            log.info("api.started", host=self._config.api.host, port=self._config.api.port)

        self._running = True
        log.info("journal.started", accounts=len(state.accounts), trades=len(state.trades))

    async def start(self) -> None:
        """Full startup sequence, then keep alive until stopped."""
        await self.setup()
        while self._running:
            await asyncio.sleep(1)

    async def stop(self) -> None:
        """Graceful shutdown sequence."""
        log.info("journal.stopping")
        self._running = False

        # 1. Stop API server
        if self._api_runner:
            await self._api_runner.cleanup()
            self._api_runner = None

        # 2. Let queued snapshot writes land
        if self._store:
            await self._store.flush()

        # 3. Close database
        if self._db:
            await self._db.close()

        log.info("journal.stopped")


async def main() -> None:
    journal = TradeJournal()

    # Handle SIGTERM/SIGINT for graceful shutdown
    loop = asyncio.get_running_loop()

    _stop_task = None

    def signal_handler():
        nonlocal _stop_task
        if _stop_task is None:
            _stop_task = asyncio.create_task(journal.stop())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await journal.start()
    except KeyboardInterrupt:
        pass
    finally:
        if _stop_task is not None:
            await _stop_task
        elif journal._running:
            await journal.stop()


def run() -> None:
    """Entry point for pyproject.toml script."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
