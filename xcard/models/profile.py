"""Profile data model."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Profile(BaseModel):
    """Public header metadata of an X profile, immutable once assembled."""

    model_config = ConfigDict(frozen=True)

    username: str = Field(..., min_length=1, max_length=15, pattern=r"^[A-Za-z0-9_]+$")
    display_name: str
    bio: str | None = None
    avatar_url: str | None = None
    verified: bool = False
    follower_count: int = Field(default=0, ge=0)
    following_count: int = Field(default=0, ge=0)
    profile_url: str
    extracted_at: datetime

    @property
    def handle(self) -> str:
        return f"@{self.username}"
