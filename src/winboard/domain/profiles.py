"""Domain models for public user profiles."""

from dataclasses import dataclass
from datetime import datetime

from winboard.domain.wins import Win


@dataclass(frozen=True)
class Badge:
    """Achievement badge shown on a profile."""

    type: str
    label: str
    description: str | None = None


@dataclass(frozen=True)
class UserProfile:
    """Read-only projection of a user's public profile."""

    username: str
    role: str
    join_date: datetime | None
    upload_count: int
    badges: list[Badge]
    recent_wins: list[Win]
    profile_picture: str | None = None
