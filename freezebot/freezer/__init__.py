"""Freeze lifecycle, scheduling, check-run synchronization and unlocks."""

from freezebot.freezer.manager import FreezeManager
from freezebot.freezer.scheduler import FreezeScheduler, start_scheduler_thread
from freezebot.freezer.sync import CheckRunSynchronizer
from freezebot.freezer.unlock import UnlockRegistry

__all__ = [
    "CheckRunSynchronizer",
    "FreezeManager",
    "FreezeScheduler",
    "UnlockRegistry",
    "start_scheduler_thread",
]
