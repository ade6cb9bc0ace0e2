"""Abstract freeze store interface.

The lifecycle engine, scheduler and synchronizer depend on FreezeStore, not
on a concrete backend, so YAML and SQLite storage are swappable without
touching the core. There is no caching above this layer: every frozen
determination re-reads current truth.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from freezebot.models import FreezeRecord, FreezeStatus, UnlockedPr


class FreezeStore(ABC):
    """Persistence for freeze records and per-PR unlock overrides.

    Backend failures must be raised as StoreError, never swallowed.
    """

    # ------------------------------------------------------------------ #
    # Freeze records                                                       #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def create_freeze(self, record: FreezeRecord) -> FreezeRecord:
        """Insert a record unless it overlaps a blocking one, atomically.

        A record blocks when it has the same (installation_id, repository),
        status active or scheduled, and an intersecting [started_at,
        expires_at) window. Raises OverlapError and writes nothing on
        conflict.
        """

    @abstractmethod
    def get_freeze(self, freeze_id: str) -> FreezeRecord | None:
        """Return the record with this id, or None."""

    @abstractmethod
    def list_freezes(
        self,
        installation_id: int | None = None,
        repository: str | None = None,
        active_only: bool = False,
    ) -> list[FreezeRecord]:
        """Return matching records, newest created first."""

    @abstractmethod
    def update_status(
        self,
        freeze_id: str,
        status: FreezeStatus,
        ended_by: str | None = None,
        ended_at: datetime | None = None,
    ) -> FreezeRecord | None:
        """Set status (and ended_by / ended_at). Returns None if the id is unknown."""

    @abstractmethod
    def delete_freeze(self, freeze_id: str) -> bool:
        """Physically remove a record. Returns False if it did not exist."""

    def get_active_freeze(self, installation_id: int, repository: str) -> FreezeRecord | None:
        """Most recently started record with status active for the pair."""
        active = self.list_freezes(installation_id, repository, active_only=True)
        if not active:
            return None
        return max(active, key=lambda r: r.started_at)

    def list_active_freezes(self) -> list[FreezeRecord]:
        """Every record with status active, earliest start first."""
        return sorted(self.list_freezes(active_only=True), key=lambda r: r.started_at)

    def list_scheduled_due(self, now: datetime) -> list[FreezeRecord]:
        """Scheduled records whose started_at <= now, earliest start first."""
        due = [
            r for r in self.list_freezes() if r.status == FreezeStatus.SCHEDULED and r.started_at <= now
        ]
        return sorted(due, key=lambda r: r.started_at)

    def list_expired_active(self, now: datetime) -> list[FreezeRecord]:
        """Active records whose expires_at <= now, earliest expiry first."""
        expired = [r for r in self.list_active_freezes() if r.expires_at is not None and r.expires_at <= now]
        return sorted(expired, key=lambda r: r.expires_at)

    # ------------------------------------------------------------------ #
    # Unlock overrides                                                     #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def upsert_unlock(self, unlock: UnlockedPr) -> None:
        """Insert or replace the override keyed by (installation_id, repository, pr_number)."""

    @abstractmethod
    def get_unlock(self, installation_id: int, repository: str, pr_number: int) -> UnlockedPr | None:
        """Return the override for one PR, or None."""

    @abstractmethod
    def list_unlocked(self, installation_id: int, repository: str) -> list[UnlockedPr]:
        """All overrides for a repository, ordered by PR number."""

    @abstractmethod
    def clear_unlocks(self, installation_id: int, repository: str) -> int:
        """Delete every override for a repository. Returns how many were removed."""

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Default is a no-op so callers can always call close() safely.
        """
