"""Read cache grouped by resource family."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Cache(Protocol):
    """Cache interface for family-scoped read results."""

    def get(self, key: str) -> object | None:
        """Return a cached value, or ``None`` on a miss."""

    def put(
        self, key: str, value: object, family: str, ttl_seconds: int | None = None
    ) -> None:
        """Store a value tagged with its resource family."""

    def invalidate(self, family: str) -> int:
        """Drop every entry of a family and return how many were dropped."""

    def clear_all(self) -> None:
        """Drop every entry."""


@dataclass
class CacheEntry:
    key: str
    value: object
    family: str
    expires_at: datetime | None = None


@dataclass
class ResponseCache(Cache):
    """In-memory cache invalidated a whole family at a time.

    Entries have no expiry unless a TTL is passed to :meth:`put`; they live
    until their family is invalidated or the cache is cleared.
    """

    _entries: dict[str, CacheEntry] = field(default_factory=dict)
    _generations: dict[str, int] = field(default_factory=dict)
    _epoch: int = 0

    def get(self, key: str) -> object | None:
        """Return a cached value if present and not expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and datetime.now(tz=UTC) >= entry.expires_at:
            self._entries.pop(key, None)
            return None
        return entry.value

    def put(
        self, key: str, value: object, family: str, ttl_seconds: int | None = None
    ) -> None:
        """Store a value under ``key`` in ``family``."""
        expires_at = None
        if ttl_seconds is not None:
            expires_at = datetime.now(tz=UTC) + timedelta(seconds=ttl_seconds)
        self._entries[key] = CacheEntry(
            key=key, value=value, family=family, expires_at=expires_at
        )

    def invalidate(self, family: str) -> int:
        """Drop all entries of ``family``."""
        self._generations[family] = self._generations.get(family, 0) + 1
        stale = [key for key, entry in self._entries.items() if entry.family == family]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear_all(self) -> None:
        """Drop every entry in every family."""
        self._epoch += 1
        self._entries.clear()

    def families(self) -> set[str]:
        return {entry.family for entry in self._entries.values()}

    async def get_or_fetch(
        self,
        key: str,
        family: str,
        fetch: Callable[[], Awaitable[object]],
        ttl_seconds: int | None = None,
        *,
        refresh: bool = False,
    ) -> object:
        """Return the cached value or fetch, store and return a fresh one.

        ``refresh`` skips the lookup and replaces the entry. A fetch that
        overlaps an invalidation of its family is returned to the caller but
        not stored.
        """
        cached = None if refresh else self.get(key)
        if cached is not None:
            return cached
        generation = self._generation(family)
        value = await fetch()
        if self._generation(family) == generation:
            self.put(key, value, family, ttl_seconds=ttl_seconds)
        return value

    def _generation(self, family: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(family, 0)
