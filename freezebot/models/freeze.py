"""Freeze window model and its status machine.

Status flow: scheduled -> active -> ended | expired. A scheduled freeze may
also be cancelled straight to ended. Ended and expired are terminal.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class FreezeStatus(str, Enum):
    """Lifecycle status of a freeze record (stored lowercase)."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    EXPIRED = "expired"
    ENDED = "ended"


ALLOWED_TRANSITIONS: dict[FreezeStatus, frozenset[FreezeStatus]] = {
    FreezeStatus.SCHEDULED: frozenset({FreezeStatus.ACTIVE, FreezeStatus.ENDED}),
    FreezeStatus.ACTIVE: frozenset({FreezeStatus.ENDED, FreezeStatus.EXPIRED}),
    FreezeStatus.EXPIRED: frozenset(),
    FreezeStatus.ENDED: frozenset(),
}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def intervals_overlap(
    start_a: datetime,
    end_a: datetime | None,
    start_b: datetime,
    end_b: datetime | None,
) -> bool:
    """Half-open [start, end) intersection; a missing end is +infinity.

    Covers b starting inside a, b ending inside a, and b containing a.
    """
    a_before_b_ends = end_b is None or start_a < end_b
    b_before_a_ends = end_a is None or start_b < end_a
    return a_before_b_ends and b_before_a_ends


class FreezeRecord(BaseModel):
    """One freeze window on one repository."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    repository: str = Field(..., description="Repository full_name, e.g. owner/repo")
    installation_id: int
    started_at: datetime
    expires_at: datetime | None = None
    ended_at: datetime | None = Field(default=None, description="Set only when status becomes ended")
    reason: str | None = None
    initiated_by: str
    ended_by: str | None = None
    branch: str | None = Field(default=None, description="Target branch; None means all branches")
    status: FreezeStatus = FreezeStatus.ACTIVE
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("started_at", "expires_at", "ended_at", "created_at")
    @classmethod
    def _normalize_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value) if value is not None else None

    def overlaps(self, start: datetime, end: datetime | None) -> bool:
        return intervals_overlap(self.started_at, self.expires_at, _as_utc(start), _as_utc(end) if end else None)

    def is_effective(self, now: datetime) -> bool:
        """Active and inside its window. An active record past expires_at is effectively expired."""
        if self.status != FreezeStatus.ACTIVE:
            return False
        now = _as_utc(now)
        if self.started_at > now:
            return False
        return self.expires_at is None or now < self.expires_at

    def applies_to_branch(self, base_branch: str) -> bool:
        return self.branch is None or self.branch == base_branch

    def can_transition_to(self, status: FreezeStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self.status]
