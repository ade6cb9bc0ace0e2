"""Shared fixtures: in-memory gateway, controllable clock, recorded sleeps."""

import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from freezebot.config import RefreshConfig
from freezebot.errors import GatewayError
from freezebot.freezer import CheckRunSynchronizer, FreezeManager, FreezeScheduler, UnlockRegistry
from freezebot.gateway import CheckConclusion, RemoteGateway
from freezebot.models import PullRequestRef
from freezebot.store import YamlFreezeStore

T0 = datetime(2025, 3, 10, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeGateway(RemoteGateway):
    """Records check runs and comments; failures are injected per head sha."""

    def __init__(self) -> None:
        self.prs: dict[str, list[PullRequestRef]] = {}
        self.statuses: list[dict] = []
        self.comments: list[tuple[str, int, str]] = []
        self.status_failures: dict[str, int] = {}
        self.always_fail: set[str] = set()
        self.list_errors: dict[str, GatewayError] = {}
        self.comment_error: GatewayError | None = None
        self.create_calls = 0
        self._lock = threading.Lock()

    def add_pr(self, repo: str, number: int, base: str = "main") -> PullRequestRef:
        pr = PullRequestRef(number=number, head_sha=f"sha{number}", base_branch=base)
        self.prs.setdefault(repo, []).append(pr)
        return pr

    def list_open_change_requests(self, installation_id: int, repo: str) -> list[PullRequestRef]:
        if repo in self.list_errors:
            raise self.list_errors[repo]
        return list(self.prs.get(repo, []))

    def get_change_request(self, installation_id: int, repo: str, number: int) -> PullRequestRef:
        for pr in self.prs.get(repo, []):
            if pr.number == number:
                return pr
        raise GatewayError(f"404: PR #{number} not found", status_code=404)

    def create_status(
        self,
        installation_id: int,
        repo: str,
        head_sha: str,
        conclusion: CheckConclusion,
        title: str,
        summary: str,
        text: str | None = None,
    ) -> None:
        with self._lock:
            self.create_calls += 1
            if head_sha in self.always_fail:
                raise GatewayError("502: Bad Gateway", status_code=502)
            remaining = self.status_failures.get(head_sha, 0)
            if remaining:
                self.status_failures[head_sha] = remaining - 1
                raise GatewayError("503: Service Unavailable", status_code=503)
            self.statuses.append(
                {
                    "repo": repo,
                    "sha": head_sha,
                    "conclusion": conclusion,
                    "title": title,
                    "summary": summary,
                    "text": text,
                }
            )

    def post_comment(self, installation_id: int, repo: str, issue_number: int, body: str) -> None:
        if self.comment_error is not None:
            raise self.comment_error
        self.comments.append((repo, issue_number, body))

    def latest(self, sha: str) -> CheckConclusion | None:
        """Conclusion of the most recent check run written for a commit."""
        for status in reversed(self.statuses):
            if status["sha"] == sha:
                return status["conclusion"]
        return None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def store(tmp_path: Path) -> YamlFreezeStore:
    return YamlFreezeStore(tmp_path / ".freezebot")


@pytest.fixture
def registry(store: YamlFreezeStore, clock: FakeClock) -> UnlockRegistry:
    return UnlockRegistry(store, clock=clock)


@pytest.fixture
def refresh_config() -> RefreshConfig:
    return RefreshConfig(
        max_concurrent_requests=10,
        batch_delay_ms=100,
        max_retries=3,
        base_retry_delay_ms=1000,
        repository_delay_ms=100,
    )


@pytest.fixture
def synchronizer(
    gateway: FakeGateway,
    store: YamlFreezeStore,
    registry: UnlockRegistry,
    refresh_config: RefreshConfig,
    sleeps: list[float],
    clock: FakeClock,
) -> CheckRunSynchronizer:
    return CheckRunSynchronizer(gateway, store, registry, refresh_config, sleep=sleeps.append, clock=clock)


@pytest.fixture
def manager(
    store: YamlFreezeStore,
    gateway: FakeGateway,
    registry: UnlockRegistry,
    synchronizer: CheckRunSynchronizer,
    clock: FakeClock,
) -> FreezeManager:
    return FreezeManager(store, gateway, registry, synchronizer, clock=clock)


@pytest.fixture
def scheduler(store: YamlFreezeStore, manager: FreezeManager, clock: FakeClock) -> FreezeScheduler:
    return FreezeScheduler(store, manager, interval_seconds=60, clock=clock)
