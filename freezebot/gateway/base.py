"""Abstract base for the remote code-hosting gateway."""

from abc import ABC, abstractmethod
from enum import Enum

from freezebot.models import PullRequestRef


class CheckConclusion(str, Enum):
    """Conclusion of a completed check run."""

    SUCCESS = "success"
    FAILURE = "failure"


class RemoteGateway(ABC):
    """Authenticated calls the freeze core makes against the hosting platform.

    Implementations raise GatewayError on any failure. Retries and backoff
    live in the synchronizer, not here.
    """

    @abstractmethod
    def list_open_change_requests(self, installation_id: int, repo: str) -> list[PullRequestRef]:
        """All open pull requests (every page) with head commit and base branch."""
        ...

    @abstractmethod
    def get_change_request(self, installation_id: int, repo: str, number: int) -> PullRequestRef:
        """Fetch one pull request by number."""
        ...

    @abstractmethod
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
        """Create a completed check run on a commit (a new entry each call)."""
        ...

    @abstractmethod
    def post_comment(self, installation_id: int, repo: str, issue_number: int, body: str) -> None:
        """Post a comment on an issue or pull request."""
        ...
