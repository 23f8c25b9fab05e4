"""Domain models for wins and their moderation."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class WinStatus(str, Enum):
    """Moderation status of a win."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not WinStatus.PENDING


class WinType(str, Enum):
    """Logical win listings exposed by the backend."""

    ENJAYY = "enjayy"
    COMMUNITY = "community"


@dataclass(frozen=True)
class Win:
    """A user-submitted win."""

    id: str
    title: str
    description: str
    image_ref: str
    is_enjayy_win: bool
    status: WinStatus
    created_by: str
    created_at: datetime
    kick_clip_url: str | None = None
    moderation_comment: str | None = None


@dataclass(frozen=True)
class WinSubmission:
    """Form payload for a new win."""

    title: str
    description: str
    image: bytes | None
    image_filename: str = "image.jpg"
    image_content_type: str = "image/jpeg"
    is_enjayy_win: bool = False
    kick_clip_url: str | None = None
