"""Domain models for moderation notifications."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from winboard.domain.wins import WinStatus


class NotificationType(str, Enum):
    """Kinds of moderation outcome delivered to a win's creator."""

    WIN_APPROVED = "win_approved"
    WIN_REJECTED = "win_rejected"

    @classmethod
    def for_verdict(cls, verdict: WinStatus) -> "NotificationType":
        if verdict is WinStatus.APPROVED:
            return cls.WIN_APPROVED
        if verdict is WinStatus.REJECTED:
            return cls.WIN_REJECTED
        raise ValueError(f"No notification for verdict {verdict.value}")


@dataclass(frozen=True)
class Notification:
    """A moderation outcome addressed to one user."""

    id: str
    recipient: str
    win_id: str
    type: NotificationType
    read: bool
    created_at: datetime
    message: str | None = None
    win_title: str | None = None
