"""Check-run synchronizer: make every open PR's check reflect the freeze.

A pass lists the repository's open PRs once, then updates them in chunks of
max_concurrent_requests on a thread pool. The whole chunk finishes before
the next one starts, with batch_delay_ms between chunks. Each PR runs its
own retry loop with exponential backoff (base_retry_delay_ms * 2^(n-1)).
One PR failing is recorded in the RefreshResult and never cancels its
siblings or the pass.

Per-PR conclusion, evaluated fresh for every update:
    no effective freeze             -> success
    freeze scoped to another branch -> success
    PR unlocked for this repository -> success (override wins)
    otherwise                       -> failure

Passes for the same repository are serialized so a late-finishing pass
cannot overwrite the checks written by a newer one.
"""

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

from freezebot.config import RefreshConfig
from freezebot.errors import FreezeBotError, GatewayError
from freezebot.freezer import messages
from freezebot.freezer.messages import CheckRunOutput
from freezebot.freezer.unlock import UnlockRegistry
from freezebot.gateway import CheckConclusion, RemoteGateway
from freezebot.models import FreezeRecord, PullRequestRef, RefreshResult
from freezebot.store import FreezeStore

LOG = logging.getLogger("freezebot.freezer.sync")


class CheckRunSynchronizer:
    """Bounded-concurrency, retried check-run updates for open PRs."""

    def __init__(
        self,
        gateway: RemoteGateway,
        store: FreezeStore,
        registry: UnlockRegistry,
        config: RefreshConfig | None = None,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._registry = registry
        self._config = config or RefreshConfig()
        self._sleep = sleep or time.sleep
        self._clock = clock or (lambda: datetime.now(UTC))
        self._repo_locks: dict[tuple[int, str], threading.Lock] = {}
        self._repo_locks_guard = threading.Lock()

    @property
    def config(self) -> RefreshConfig:
        return self._config

    def _repo_lock(self, installation_id: int, repository: str) -> threading.Lock:
        with self._repo_locks_guard:
            return self._repo_locks.setdefault((installation_id, repository), threading.Lock())

    # ------------------------------------------------------------------ #
    # Frozen determination                                                 #
    # ------------------------------------------------------------------ #

    def evaluate(
        self,
        installation_id: int,
        repository: str,
        pr: PullRequestRef,
        freeze: FreezeRecord | None,
    ) -> tuple[CheckConclusion, CheckRunOutput]:
        """Conclusion and check output for one PR under the given freeze."""
        if freeze is None or not freeze.is_effective(self._clock()):
            return CheckConclusion.SUCCESS, messages.not_frozen_output()
        if not freeze.applies_to_branch(pr.base_branch):
            return CheckConclusion.SUCCESS, messages.branch_not_frozen_output(freeze, pr.base_branch)
        unlock = self._registry.get(installation_id, repository, pr.number)
        if unlock is not None:
            return CheckConclusion.SUCCESS, messages.unlocked_output(freeze, unlock)
        return CheckConclusion.FAILURE, messages.frozen_output(freeze)

    # ------------------------------------------------------------------ #
    # Passes                                                               #
    # ------------------------------------------------------------------ #

    def refresh_repository(
        self,
        installation_id: int,
        repository: str,
        freeze: FreezeRecord | None,
    ) -> RefreshResult:
        """Update every open PR of a repository.

        Raises GatewayError when the open PR list cannot be fetched; per-PR
        failures are returned in the result instead.
        """
        with self._repo_lock(installation_id, repository):
            LOG.info("Starting PR refresh for %s (freeze: %s)", repository, freeze.id if freeze else "none")
            prs = self._gateway.list_open_change_requests(installation_id, repository)
            result = RefreshResult(total_prs=len(prs))
            if not prs:
                LOG.info("No open PRs found for %s", repository)
                return result

            self._update_in_chunks(installation_id, repository, prs, freeze, result)

        LOG.info(
            "PR refresh for %s done: %s/%s updated, %s failed",
            repository,
            result.successful_updates,
            result.total_prs,
            result.failed_updates,
        )
        return result

    def resync_repository(self, installation_id: int, repository: str) -> RefreshResult:
        """refresh_repository against the repository's currently stored active freeze."""
        freeze = self._store.get_active_freeze(installation_id, repository)
        return self.refresh_repository(installation_id, repository, freeze)

    def refresh_single(self, installation_id: int, repository: str, pr_number: int) -> RefreshResult:
        """Re-evaluate and update one PR (after an unlock or a push)."""
        pr = self._gateway.get_change_request(installation_id, repository, pr_number)
        freeze = self._store.get_active_freeze(installation_id, repository)
        result = RefreshResult(total_prs=1)
        try:
            self._update_pr(installation_id, repository, pr, freeze)
        except GatewayError as e:
            result.record_failure(f"PR #{pr.number}: {e}")
        else:
            result.record_success()
        return result

    def refresh_all_active(self) -> dict[str, RefreshResult]:
        """Refresh every repository with an effective freeze, one after another.

        A failing repository is recorded under its name and the sweep goes on.
        """
        now = self._clock()
        freezes = [f for f in self._store.list_active_freezes() if f.is_effective(now)]
        if not freezes:
            LOG.info("No active freezes found")
            return {}

        LOG.info("Starting global PR refresh for %s active freeze(s)", len(freezes))
        results: dict[str, RefreshResult] = {}
        for i, freeze in enumerate(freezes):
            if i:
                self._sleep(self._config.repository_delay_ms / 1000)
            try:
                results[freeze.repository] = self.refresh_repository(
                    freeze.installation_id, freeze.repository, freeze
                )
            except FreezeBotError as e:
                LOG.warning("Failed to refresh repository %s: %s", freeze.repository, e)
                results[freeze.repository] = RefreshResult(errors=[f"Repository refresh failed: {e}"])
        return results

    # ------------------------------------------------------------------ #
    # Batching and retries                                                 #
    # ------------------------------------------------------------------ #

    def _update_in_chunks(
        self,
        installation_id: int,
        repository: str,
        prs: list[PullRequestRef],
        freeze: FreezeRecord | None,
        result: RefreshResult,
    ) -> None:
        size = self._config.max_concurrent_requests
        with ThreadPoolExecutor(max_workers=size, thread_name_prefix="freezebot-sync") as pool:
            for start in range(0, len(prs), size):
                if start:
                    self._sleep(self._config.batch_delay_ms / 1000)
                chunk = prs[start : start + size]
                futures = [
                    pool.submit(self._update_pr, installation_id, repository, pr, freeze) for pr in chunk
                ]
                for pr, future in zip(chunk, futures):
                    try:
                        future.result()
                    except Exception as e:
                        result.record_failure(f"PR #{pr.number}: {e}")
                    else:
                        result.record_success()

    def _update_pr(
        self,
        installation_id: int,
        repository: str,
        pr: PullRequestRef,
        freeze: FreezeRecord | None,
    ) -> None:
        conclusion, output = self.evaluate(installation_id, repository, pr, freeze)
        LOG.debug("PR #%s in %s -> %s", pr.number, repository, conclusion.value)
        self._create_with_retry(installation_id, repository, pr, conclusion, output)

    def _create_with_retry(
        self,
        installation_id: int,
        repository: str,
        pr: PullRequestRef,
        conclusion: CheckConclusion,
        output: CheckRunOutput,
    ) -> None:
        max_retries = self._config.max_retries
        attempt = 0
        while True:
            try:
                self._gateway.create_status(
                    installation_id,
                    repository,
                    pr.head_sha,
                    conclusion,
                    output.title,
                    output.summary,
                    output.text,
                )
            except GatewayError as e:
                attempt += 1
                if attempt > max_retries:
                    LOG.error("Failed to update PR #%s after %s attempts: %s", pr.number, attempt, e)
                    raise
                delay_ms = self._config.base_retry_delay_ms * 2 ** (attempt - 1)
                LOG.warning(
                    "Failed to update PR #%s (attempt %s), retrying in %sms: %s",
                    pr.number,
                    attempt,
                    delay_ms,
                    e,
                )
                self._sleep(delay_ms / 1000)
            else:
                if attempt:
                    LOG.info("Updated PR #%s after %s retries", pr.number, attempt)
                return
