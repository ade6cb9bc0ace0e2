"""Repository identifier in owner/name form."""

from pydantic import BaseModel, ConfigDict

from freezebot.errors import ValidationError


class Repository(BaseModel):
    """GitHub repository (owner + name). Stored as full_name "owner/name"."""

    model_config = ConfigDict(frozen=True)

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, full_name: str) -> "Repository":
        """Parse "owner/name". Raises ValidationError on anything else."""
        parts = [p.strip() for p in (full_name or "").strip().split("/")]
        if len(parts) != 2 or any(p in ("", ".", "..") for p in parts):
            raise ValidationError(f"Invalid repository format: {full_name!r} (expected owner/name)")
        return cls(owner=parts[0], name=parts[1])

    def __str__(self) -> str:
        return self.full_name
