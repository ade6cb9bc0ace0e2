"""Outcome of one synchronization pass."""

from pydantic import BaseModel, Field


class RefreshResult(BaseModel):
    """Counters and error strings of a pass. Logged only, never persisted."""

    total_prs: int = 0
    successful_updates: int = 0
    failed_updates: int = 0
    errors: list[str] = Field(default_factory=list)

    def record_success(self) -> None:
        self.successful_updates += 1

    def record_failure(self, error: str) -> None:
        self.failed_updates += 1
        self.errors.append(error)

    @property
    def ok(self) -> bool:
        """True when every PR in the pass was updated."""
        return self.failed_updates == 0 and not self.errors
