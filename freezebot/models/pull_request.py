"""Open pull request as seen by the check-run synchronizer."""

from pydantic import BaseModel


class PullRequestRef(BaseModel):
    """Pull request number, head commit and base branch. Fetched fresh on every pass."""

    number: int
    head_sha: str
    base_branch: str
