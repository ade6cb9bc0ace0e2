"""Data models for freezes, unlock overrides, pull requests and refresh results (Pydantic)."""

from freezebot.models.freeze import ALLOWED_TRANSITIONS, FreezeRecord, FreezeStatus, intervals_overlap
from freezebot.models.pull_request import PullRequestRef
from freezebot.models.refresh import RefreshResult
from freezebot.models.repository import Repository
from freezebot.models.unlocked_pr import UnlockedPr

__all__ = [
    "ALLOWED_TRANSITIONS",
    "FreezeRecord",
    "FreezeStatus",
    "PullRequestRef",
    "RefreshResult",
    "Repository",
    "UnlockedPr",
    "intervals_overlap",
]
