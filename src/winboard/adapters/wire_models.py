"""Pydantic models for backend JSON payloads."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from winboard.domain.notifications import Notification, NotificationType
from winboard.domain.profiles import Badge, UserProfile
from winboard.domain.session import UserIdentity
from winboard.domain.wins import Win, WinStatus


class _WireModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


class UserPayload(_WireModel):
    """User object embedded in auth responses."""

    id: str = Field(alias="_id")
    username: str
    role: str = "user"

    def to_identity(self) -> UserIdentity:
        return UserIdentity(id=self.id, username=self.username, role=self.role)


class LoginResponse(_WireModel):
    """Response to ``POST /login``."""

    token: str
    user: UserPayload


class SettingsResponse(_WireModel):
    """Response to ``PUT /users/settings``."""

    user: UserPayload
    token: str | None = None


class WinPayload(_WireModel):
    """Win as returned by the backend."""

    id: str = Field(alias="_id")
    title: str
    description: str = ""
    image_url: str = Field(default="", alias="imageUrl")
    kick_clip_url: str | None = Field(default=None, alias="kickClipUrl")
    is_enjayy_win: bool = Field(default=False, alias="isEnjayyWin")
    status: WinStatus = WinStatus.PENDING
    created_by: str = Field(alias="createdBy")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=UTC), alias="createdAt"
    )
    moderation_comment: str | None = Field(default=None, alias="moderationComment")

    def to_domain(self) -> Win:
        return Win(
            id=self.id,
            title=self.title,
            description=self.description,
            image_ref=self.image_url,
            kick_clip_url=self.kick_clip_url or None,
            is_enjayy_win=self.is_enjayy_win,
            status=self.status,
            created_by=self.created_by,
            created_at=self.created_at,
            moderation_comment=self.moderation_comment,
        )


class NotificationPayload(_WireModel):
    """Notification as returned by ``GET /notifications``."""

    id: str = Field(alias="_id")
    recipient: str | None = None
    win_id: str = Field(alias="winId")
    win_title: str | None = Field(default=None, alias="winTitle")
    type: NotificationType
    message: str | None = None
    read: bool = False
    created_at: datetime = Field(alias="createdAt")

    def to_domain(self, default_recipient: str) -> Notification:
        return Notification(
            id=self.id,
            recipient=self.recipient or default_recipient,
            win_id=self.win_id,
            win_title=self.win_title,
            type=self.type,
            message=self.message,
            read=self.read,
            created_at=self.created_at,
        )


class BadgePayload(_WireModel):
    """Profile badge."""

    type: str
    label: str
    description: str | None = None


class ProfilePayload(_WireModel):
    """Response to ``GET /users/{username}``."""

    username: str
    role: str = "user"
    join_date: datetime | None = Field(default=None, alias="joinDate")
    upload_count: int = Field(default=0, alias="uploadCount")
    badges: list[BadgePayload] = Field(default_factory=list)
    recent_wins: list[WinPayload] = Field(default_factory=list, alias="recentWins")
    profile_picture: str | None = Field(default=None, alias="profilePicture")

    def to_domain(self) -> UserProfile:
        return UserProfile(
            username=self.username,
            role=self.role,
            join_date=self.join_date,
            upload_count=self.upload_count,
            badges=[
                Badge(type=badge.type, label=badge.label, description=badge.description)
                for badge in self.badges
            ],
            recent_wins=[win.to_domain() for win in self.recent_wins],
            profile_picture=self.profile_picture,
        )


def parse_wins(payload: object) -> list[Win]:
    """Parse a list of wins from a decoded response body."""
    if not isinstance(payload, list):
        return []
    return [WinPayload.model_validate(item).to_domain() for item in payload]
