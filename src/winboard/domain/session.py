"""Domain models for the authenticated session."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class UserIdentity:
    """Minimal user projection kept alongside the bearer token."""

    id: str
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "username": self.username, "role": self.role}


@dataclass(frozen=True)
class Session:
    """The single authenticated identity of the process."""

    token: str
    user: UserIdentity
    last_verified_at: datetime | None = None

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def username(self) -> str:
        return self.user.username

    @property
    def role(self) -> str:
        return self.user.role

    @property
    def is_admin(self) -> bool:
        return self.user.is_admin


@dataclass(frozen=True)
class StoredSession:
    """Persisted token and user projection."""

    token: str
    user: UserIdentity
