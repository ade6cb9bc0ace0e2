"""Freeze lifecycle: create, schedule, activate, end, expire, unlock.

The store is the source of truth. Every transition is persisted first and
the check-run synchronizer runs afterwards; a failed synchronization is
logged and never rolls a transition back.

When a caller passes the issue_number the command came from, an
acknowledgement (or error) comment is posted there. Comment failures are
logged only.
"""

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from freezebot.errors import FreezeBotError, GatewayError, NotFoundError, TransitionError, ValidationError
from freezebot.freezer import messages
from freezebot.freezer.sync import CheckRunSynchronizer
from freezebot.freezer.unlock import UnlockRegistry
from freezebot.gateway import RemoteGateway
from freezebot.models import FreezeRecord, FreezeStatus, RefreshResult, Repository, UnlockedPr
from freezebot.store import FreezeStore

LOG = logging.getLogger("freezebot.freezer.manager")

DEFAULT_DURATION = timedelta(hours=2)


def _repo_name(repository: str) -> str:
    return Repository.parse(repository).full_name


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class FreezeManager:
    """Owns freeze-record invariants and triggers synchronization."""

    def __init__(
        self,
        store: FreezeStore,
        gateway: RemoteGateway,
        registry: UnlockRegistry,
        synchronizer: CheckRunSynchronizer,
        default_duration: timedelta = DEFAULT_DURATION,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._registry = registry
        self._sync = synchronizer
        self._default_duration = default_duration
        self._clock = clock or (lambda: datetime.now(UTC))
        self._transition_lock = threading.RLock()

    @property
    def synchronizer(self) -> CheckRunSynchronizer:
        return self._sync

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def is_frozen(self, installation_id: int, repository: str) -> bool:
        """True iff a record with status active exists (no time-window re-check)."""
        return self._store.get_active_freeze(installation_id, _repo_name(repository)) is not None

    def get_active(self, installation_id: int, repository: str) -> FreezeRecord | None:
        return self._store.get_active_freeze(installation_id, _repo_name(repository))

    def status(self, installation_id: int, repository: str) -> list[FreezeRecord]:
        """Active and scheduled freezes of a repository, earliest start first."""
        records = [
            r
            for r in self._store.list_freezes(installation_id, _repo_name(repository))
            if r.status in (FreezeStatus.ACTIVE, FreezeStatus.SCHEDULED)
        ]
        return sorted(records, key=lambda r: r.started_at)

    def status_message(self, installation_id: int, repository: str) -> str:
        return messages.format_status_table(_repo_name(repository), self.status(installation_id, repository))

    # ------------------------------------------------------------------ #
    # Create                                                               #
    # ------------------------------------------------------------------ #

    def create_freeze(
        self,
        installation_id: int,
        repository: str,
        actor: str,
        start: datetime | None = None,
        end: datetime | None = None,
        duration: timedelta | None = None,
        reason: str | None = None,
        branch: str | None = None,
        issue_number: int | None = None,
    ) -> FreezeRecord:
        """Persist a freeze: active when start <= now, scheduled otherwise.

        Window end is `end`, else start + `duration`, else start + the
        default duration (2 hours). Raises ValidationError for a degenerate
        window and OverlapError when it intersects an active or scheduled
        freeze on the same repository; nothing is written in either case.

        Active records whose window already passed are expired first, so the
        new freeze never inherits their unlocks.
        """
        try:
            record = self._build_record(installation_id, repository, actor, start, end, duration, reason, branch)
            self._expire_elapsed(installation_id, record.repository)
            self._store.create_freeze(record)
        except ValidationError as e:
            LOG.info("Freeze request for %s rejected: %s", repository, e)
            self._notify(installation_id, repository, issue_number, messages.freeze_error(str(e)))
            raise

        LOG.info(
            "Freeze %s created for %s by %s (%s, %s -> %s, branch=%s)",
            record.id,
            record.repository,
            actor,
            record.status.value,
            messages.format_time(record.started_at),
            messages.format_time(record.expires_at),
            record.branch or "*",
        )
        self._synchronize(installation_id, record.repository)
        if record.status == FreezeStatus.SCHEDULED:
            self._notify(installation_id, record.repository, issue_number, messages.freeze_scheduled(record))
        else:
            self._notify(installation_id, record.repository, issue_number, messages.freeze_success(record))
        return record

    def schedule_freeze(
        self,
        installation_id: int,
        repository: str,
        actor: str,
        start: datetime,
        end: datetime | None = None,
        duration: timedelta | None = None,
        reason: str | None = None,
        branch: str | None = None,
        issue_number: int | None = None,
    ) -> FreezeRecord:
        """create_freeze for a window that must start in the future."""
        start = _as_utc(start)
        if start <= self._clock():
            raise ValidationError("Scheduled freeze must start in the future")
        return self.create_freeze(
            installation_id,
            repository,
            actor,
            start=start,
            end=end,
            duration=duration,
            reason=reason,
            branch=branch,
            issue_number=issue_number,
        )

    def _build_record(
        self,
        installation_id: int,
        repository: str,
        actor: str,
        start: datetime | None,
        end: datetime | None,
        duration: timedelta | None,
        reason: str | None,
        branch: str | None,
    ) -> FreezeRecord:
        repo = Repository.parse(repository)
        if not actor:
            raise ValidationError("Freeze requires an initiating actor")
        if end is not None and duration is not None:
            raise ValidationError("Give either an end time or a duration, not both")
        now = self._clock()
        started_at = _as_utc(start or now)
        if end is not None:
            expires_at = _as_utc(end)
        else:
            expires_at = started_at + (duration if duration is not None else self._default_duration)
        if expires_at <= started_at:
            raise ValidationError("Freeze end must be after its start")
        if expires_at <= now:
            raise ValidationError("Freeze window is already over")

        return FreezeRecord(
            repository=repo.full_name,
            installation_id=installation_id,
            started_at=started_at,
            expires_at=expires_at,
            reason=(reason or "").strip() or None,
            initiated_by=actor,
            branch=(branch or "").strip() or None,
            status=FreezeStatus.SCHEDULED if started_at > now else FreezeStatus.ACTIVE,
            created_at=now,
        )

    # ------------------------------------------------------------------ #
    # Transitions                                                          #
    # ------------------------------------------------------------------ #

    def end_freeze(
        self,
        installation_id: int,
        repository: str,
        actor: str,
        issue_number: int | None = None,
    ) -> list[FreezeRecord]:
        """End every active freeze of the repository and clear its unlocks.

        Raises NotFoundError (no state change) when nothing is active.
        """
        repository = _repo_name(repository)
        with self._transition_lock:
            ended = []
            for record in self._store.list_freezes(installation_id, repository, active_only=True):
                current = self._store.get_freeze(record.id)
                # expired by another process since the listing
                if current is None or current.status != FreezeStatus.ACTIVE:
                    continue
                ended.append(self._transition(current, FreezeStatus.ENDED, ended_by=actor))
        if not ended:
            error = NotFoundError(f"No active freeze for {repository}")
            self._notify(installation_id, repository, issue_number, messages.unfreeze_error(str(error)))
            raise error

        self._registry.clear_repository(installation_id, repository)
        LOG.info("Ended %s freeze(s) for %s by %s", len(ended), repository, actor)
        self._synchronize(installation_id, repository)
        self._notify(installation_id, repository, issue_number, messages.unfreeze_success(repository))
        return ended

    def cancel_scheduled(self, installation_id: int, repository: str, actor: str) -> list[FreezeRecord]:
        """Move every scheduled (not yet started) freeze of the repository to ended."""
        repository = _repo_name(repository)
        with self._transition_lock:
            scheduled = [
                r
                for r in self._store.list_freezes(installation_id, repository)
                if r.status == FreezeStatus.SCHEDULED
            ]
            cancelled = [self._transition(r, FreezeStatus.ENDED, ended_by=actor) for r in scheduled]
        if not cancelled:
            raise NotFoundError(f"No scheduled freeze for {repository}")
        LOG.info("Cancelled %s scheduled freeze(s) for %s by %s", len(cancelled), repository, actor)
        return cancelled

    def activate(self, record: FreezeRecord) -> FreezeRecord:
        """Scheduled -> active, then synchronize. Starts with no unlocks."""
        self._expire_elapsed(record.installation_id, record.repository)
        activated = self._transition(record, FreezeStatus.ACTIVE)
        LOG.info("Activated scheduled freeze %s for %s", activated.id, activated.repository)
        self._synchronize(activated.installation_id, activated.repository)
        return activated

    def expire(self, record: FreezeRecord) -> FreezeRecord:
        """Active -> expired once past expires_at; clears unlocks and synchronizes."""
        expired = self._transition(record, FreezeStatus.EXPIRED)
        self._registry.clear_repository(expired.installation_id, expired.repository)
        LOG.info("Freeze %s for %s expired", expired.id, expired.repository)
        self._synchronize(expired.installation_id, expired.repository)
        return expired

    def _expire_elapsed(self, installation_id: int, repository: str) -> list[FreezeRecord]:
        """Expire active records past their end that the scheduler has not swept yet."""
        now = self._clock()
        with self._transition_lock:
            elapsed = [
                r
                for r in self._store.list_freezes(installation_id, repository, active_only=True)
                if r.expires_at is not None and r.expires_at <= now
            ]
            expired = [self._transition(r, FreezeStatus.EXPIRED) for r in elapsed]
        if expired:
            self._registry.clear_repository(installation_id, repository)
            LOG.info("Expired %s elapsed freeze(s) for %s", len(expired), repository)
        return expired

    def _transition(
        self,
        record: FreezeRecord,
        status: FreezeStatus,
        ended_by: str | None = None,
    ) -> FreezeRecord:
        with self._transition_lock:
            current = self._store.get_freeze(record.id)
            if current is None:
                raise NotFoundError(f"Freeze {record.id} not found")
            if not current.can_transition_to(status):
                raise TransitionError(
                    f"Freeze {record.id} cannot move from {current.status.value} to {status.value}"
                )
            ended_at = self._clock() if status == FreezeStatus.ENDED else None
            updated = self._store.update_status(
                record.id,
                status,
                ended_by=ended_by if status == FreezeStatus.ENDED else None,
                ended_at=ended_at,
            )
            if updated is None:
                raise NotFoundError(f"Freeze {record.id} not found")
            return updated

    # ------------------------------------------------------------------ #
    # Unlock                                                               #
    # ------------------------------------------------------------------ #

    def unlock_pr(
        self,
        installation_id: int,
        repository: str,
        pr_number: int,
        actor: str,
        issue_number: int | None = None,
    ) -> UnlockedPr:
        """Grant the override, then refresh that PR's check alone.

        Raises NotFoundError (nothing stored) unless a freeze is in force.
        """
        repository = _repo_name(repository)
        freeze = self._store.get_active_freeze(installation_id, repository)
        if freeze is None or not freeze.is_effective(self._clock()):
            error = NotFoundError(f"No active freeze for {repository}")
            self._notify(installation_id, repository, issue_number, messages.unlock_error(str(error)))
            raise error

        unlock = self._registry.unlock(installation_id, repository, pr_number, actor)
        try:
            result = self._sync.refresh_single(installation_id, repository, pr_number)
        except FreezeBotError as e:
            LOG.warning("Failed to refresh PR #%s in %s after unlock: %s", pr_number, repository, e)
        else:
            if not result.ok:
                LOG.warning("Refresh of PR #%s in %s after unlock failed: %s", pr_number, repository, result.errors)
        self._notify(
            installation_id,
            repository,
            issue_number,
            messages.unlock_success(repository, pr_number, actor),
        )
        return unlock

    # ------------------------------------------------------------------ #
    # Side effects                                                         #
    # ------------------------------------------------------------------ #

    def _synchronize(self, installation_id: int, repository: str) -> RefreshResult | None:
        try:
            result = self._sync.resync_repository(installation_id, repository)
        except FreezeBotError as e:
            LOG.warning("Failed to refresh PRs for %s: %s. Freeze state is unchanged.", repository, e)
            return None
        if result.failed_updates:
            LOG.warning(
                "PR refresh for %s left %s PR(s) stale: %s",
                repository,
                result.failed_updates,
                "; ".join(result.errors),
            )
        return result

    def _notify(self, installation_id: int, repository: str, issue_number: int | None, body: str) -> None:
        if issue_number is None:
            return
        try:
            self._gateway.post_comment(installation_id, repository, issue_number, body)
        except GatewayError as e:
            LOG.error("Failed to create response comment on %s#%s: %s", repository, issue_number, e)
