"""Per-repository set of PR numbers exempted from the current freeze."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from freezebot.models import UnlockedPr
from freezebot.store import FreezeStore

LOG = logging.getLogger("freezebot.freezer.unlock")


class UnlockRegistry:
    """Unlock overrides keyed by (installation_id, repository, pr_number).

    Data only: refreshing the PR's check run after an unlock is the caller's
    job (FreezeManager.unlock_pr).
    """

    def __init__(self, store: FreezeStore, clock: Callable[[], datetime] | None = None) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(UTC))

    def unlock(self, installation_id: int, repository: str, pr_number: int, actor: str) -> UnlockedPr:
        """Upsert the override; re-unlocking replaces the previous record."""
        record = UnlockedPr(
            installation_id=installation_id,
            repository=repository,
            pr_number=pr_number,
            unlocked_by=actor,
            unlocked_at=self._clock(),
        )
        self._store.upsert_unlock(record)
        LOG.info("PR #%s in %s unlocked by %s", pr_number, repository, actor)
        return record

    def get(self, installation_id: int, repository: str, pr_number: int) -> UnlockedPr | None:
        return self._store.get_unlock(installation_id, repository, pr_number)

    def is_unlocked(self, installation_id: int, repository: str, pr_number: int) -> bool:
        return self.get(installation_id, repository, pr_number) is not None

    def list(self, installation_id: int, repository: str) -> list[UnlockedPr]:
        return self._store.list_unlocked(installation_id, repository)

    def clear_repository(self, installation_id: int, repository: str) -> int:
        removed = self._store.clear_unlocks(installation_id, repository)
        if removed:
            LOG.info("Cleared %s unlocked PR(s) for %s", removed, repository)
        return removed
