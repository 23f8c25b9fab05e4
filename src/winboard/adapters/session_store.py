"""Persistence for the bearer token and user projection."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from winboard.domain.session import StoredSession, UserIdentity

_logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Interface for persisting the active session between runs."""

    def load(self) -> StoredSession | None:
        """Return the persisted session, if any."""

    def save(self, session: StoredSession) -> None:
        """Persist the token and user projection."""

    def clear(self) -> None:
        """Forget any persisted session."""


@dataclass
class MemorySessionStore(SessionStore):
    """Keeps the session for the lifetime of the process only."""

    stored: StoredSession | None = None

    def load(self) -> StoredSession | None:
        return self.stored

    def save(self, session: StoredSession) -> None:
        self.stored = session

    def clear(self) -> None:
        self.stored = None


@dataclass
class JsonFileSessionStore(SessionStore):
    """Stores ``{"token", "user"}`` in a JSON file readable only by the owner."""

    path: Path

    def load(self) -> StoredSession | None:
        """Read the session file; unreadable content counts as no session."""
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            user = raw["user"]
            return StoredSession(
                token=str(raw["token"]),
                user=UserIdentity(
                    id=str(user["id"]),
                    username=str(user["username"]),
                    role=str(user.get("role", "user")),
                ),
            )
        except (OSError, ValueError, KeyError, TypeError):
            _logger.warning("Ignoring unreadable session file")
            return None

    def save(self, session: StoredSession) -> None:
        """Write the token and the minimal user projection."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"token": session.token, "user": session.user.to_dict()}
        self.path.write_text(json.dumps(payload), encoding="utf-8")
        self.path.chmod(0o600)

    def clear(self) -> None:
        """Remove the session file if present."""
        self.path.unlink(missing_ok=True)
