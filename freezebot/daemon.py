"""
Freezebot daemon: builds the services from config and runs the scheduler.

The scheduler activates due freezes and expires elapsed ones; each
transition re-synchronizes the repository's PR checks. Freeze commands
arrive through the CLI (or any caller of FreezeManager) against the same
store.
"""

import logging
import threading
from datetime import timedelta

from freezebot.config import AppConfig
from freezebot.freezer import (
    CheckRunSynchronizer,
    FreezeManager,
    FreezeScheduler,
    UnlockRegistry,
    start_scheduler_thread,
)
from freezebot.gateway import RemoteGateway, make_gateway
from freezebot.logging import FreezeBotLogging
from freezebot.store import FreezeStore, make_store

LOG = logging.getLogger("freezebot.daemon")


class Services:
    """Wired core components sharing one store and one gateway."""

    def __init__(self, config: AppConfig, store: FreezeStore, gateway: RemoteGateway) -> None:
        self.config = config
        self.store = store
        self.gateway = gateway
        self.registry = UnlockRegistry(store)
        self.synchronizer = CheckRunSynchronizer(gateway, store, self.registry, config.refresh)
        self.manager = FreezeManager(
            store,
            gateway,
            self.registry,
            self.synchronizer,
            default_duration=timedelta(minutes=config.freeze.default_duration_minutes),
        )
        self.scheduler = FreezeScheduler(store, self.manager, interval_seconds=config.scheduler.interval_seconds)

    def close(self) -> None:
        self.store.close()


def build_services(
    config: AppConfig,
    store: FreezeStore | None = None,
    gateway: RemoteGateway | None = None,
) -> Services:
    """Build services from config; store and gateway may be injected (tests)."""
    return Services(
        config,
        store if store is not None else make_store(config.store),
        gateway if gateway is not None else make_gateway(config),
    )


def run_daemon(config: AppConfig, stop_event: threading.Event | None = None) -> None:
    """Run the scheduler until stop_event is set (or KeyboardInterrupt)."""
    FreezeBotLogging(config.logging).setup()
    stop_event = stop_event or threading.Event()
    services = build_services(config)

    LOG.info(
        "Freezebot daemon started | store=%s:%s | scheduler=%s | interval=%ss",
        config.store.backend,
        config.store.path,
        config.scheduler.enabled,
        config.scheduler.interval_seconds,
    )
    if not config.scheduler.enabled:
        LOG.warning("Scheduler disabled in config; scheduled freezes will not activate or expire.")
        services.close()
        return

    thread = start_scheduler_thread(services.scheduler, stop_event)
    try:
        while thread.is_alive() and not stop_event.is_set():
            stop_event.wait(1.0)
    finally:
        stop_event.set()
        thread.join(timeout=5)
        services.close()
        LOG.info("Freezebot daemon stopped")
