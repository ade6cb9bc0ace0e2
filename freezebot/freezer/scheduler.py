"""Scheduler: every interval, activate due scheduled freezes and expire elapsed ones."""

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime

from freezebot.freezer.manager import FreezeManager
from freezebot.models import FreezeRecord
from freezebot.store import FreezeStore

LOG = logging.getLogger("freezebot.freezer.scheduler")


class FreezeScheduler:
    """The only component that turns the passage of time into status changes.

    Each tick activates scheduled freezes whose start has arrived (earliest
    first) and expires active freezes whose end has passed. A failure on one
    record is logged and the tick moves on to the next.
    """

    def __init__(
        self,
        store: FreezeStore,
        manager: FreezeManager,
        interval_seconds: int = 60,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._manager = manager
        self.interval_seconds = interval_seconds
        self._clock = clock or (lambda: datetime.now(UTC))

    def tick(self) -> tuple[list[FreezeRecord], list[FreezeRecord]]:
        """Run one pass. Returns (activated, expired)."""
        now = self._clock()
        expired = self._apply(self._store.list_expired_active(now), self._manager.expire, "expire")
        activated = self._apply(self._store.list_scheduled_due(now), self._manager.activate, "activate")
        if activated or expired:
            LOG.info("Scheduler tick: %s activated, %s expired", len(activated), len(expired))
        return activated, expired

    def _apply(
        self,
        records: list[FreezeRecord],
        action: Callable[[FreezeRecord], FreezeRecord],
        verb: str,
    ) -> list[FreezeRecord]:
        done = []
        for record in records:
            try:
                done.append(action(record))
            except Exception as e:
                LOG.error("Scheduler: failed to %s freeze %s for %s: %s", verb, record.id, record.repository, e)
        return done

    def run_forever(self, stop_event: threading.Event) -> None:
        """Loop: tick, then wait interval_seconds or until stop_event is set."""
        LOG.info("Scheduler started (interval %ss)", self.interval_seconds)
        while not stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                LOG.exception("Scheduler tick error: %s", e)
            stop_event.wait(self.interval_seconds)
        LOG.info("Scheduler stopped")


def start_scheduler_thread(scheduler: FreezeScheduler, stop_event: threading.Event) -> threading.Thread:
    """Start the scheduler in a daemon thread. Set stop_event to end it."""
    thread = threading.Thread(
        target=scheduler.run_forever,
        args=(stop_event,),
        name="freezebot-scheduler",
        daemon=True,
    )
    thread.start()
    return thread
