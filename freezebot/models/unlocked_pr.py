"""Per-PR override granted during an active freeze."""

from datetime import datetime

from pydantic import BaseModel, Field


class UnlockedPr(BaseModel):
    """Unlock record keyed by (installation_id, repository, pr_number)."""

    installation_id: int
    repository: str = Field(..., description="Repository full_name, e.g. owner/repo")
    pr_number: int
    unlocked_by: str = Field(..., description="Login of the operator who granted the override")
    unlocked_at: datetime
