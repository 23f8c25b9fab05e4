"""Process-wide client state shared by reference between services."""

from dataclasses import dataclass, field

from winboard.domain.session import Session
from winboard.services.cache import ResponseCache


@dataclass
class ClientContext:
    """Holds the active session and the response cache.

    Any service may read both. Only ``SessionManager`` assigns ``session`` and
    only the cache's own methods change cache entries.
    """

    cache: ResponseCache = field(default_factory=ResponseCache)
    session: Session | None = None

    @property
    def token(self) -> str | None:
        return self.session.token if self.session else None
