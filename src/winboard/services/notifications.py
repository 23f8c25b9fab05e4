"""Moderation notifications for the signed-in user."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import uuid4

import httpx

from winboard.adapters.wire_models import NotificationPayload
from winboard.domain.errors import Conflict, RequestRejected
from winboard.domain.notifications import Notification, NotificationType
from winboard.domain.wins import Win, WinStatus
from winboard.services.cache import ResponseCache
from winboard.services.gateway import RequestGateway

NOTIFICATIONS_FAMILY = "notifications"

_logger = logging.getLogger(__name__)


@dataclass
class NotificationCenter:
    """Ledger of moderation notifications, one per decided win.

    Locally emitted records are replaced by the backend's copy for the same
    win once it is fetched. ``read`` only ever moves from false to true.
    """

    gateway: RequestGateway
    cache: ResponseCache
    _by_id: dict[str, Notification] = field(default_factory=dict)
    _by_win: dict[str, str] = field(default_factory=dict)

    def emit(self, win: Win, verdict: WinStatus, comment: str | None) -> Notification:
        """Record the outcome of a moderation decision for the win's creator."""
        if win.id in self._by_win:
            raise Conflict(f"Win {win.id} already has a moderation notification")
        notification = Notification(
            id=f"local-{uuid4()}",
            recipient=win.created_by,
            win_id=win.id,
            win_title=win.title,
            type=NotificationType.for_verdict(verdict),
            message=comment,
            read=False,
            created_at=datetime.now(tz=UTC),
        )
        self._store(notification)
        _logger.info("Notification %s for win %s", notification.type.value, win.id)
        return notification

    async def list(self, user: str, *, refresh: bool = False) -> list[Notification]:
        """Return ``user``'s notifications, newest first."""
        if refresh:
            self.cache.invalidate(NOTIFICATIONS_FAMILY)
        payload = await self.cache.get_or_fetch(
            "notifications", NOTIFICATIONS_FAMILY, self._fetch
        )
        for item in payload:
            self._merge(NotificationPayload.model_validate(item).to_domain(user))
        owned = [n for n in self._by_id.values() if n.recipient == user]
        return sorted(owned, key=lambda n: n.created_at, reverse=True)

    async def unread_count(self, user: str, *, refresh: bool = False) -> int:
        """Return how many of ``user``'s notifications are unread.

        Uses the backend's counter endpoint. When the backend has no such
        endpoint the merged ledger is counted instead.
        """
        try:
            payload = await self.gateway.request("/notifications/unread/count")
        except RequestRejected as exc:
            if exc.status != httpx.codes.NOT_FOUND:
                raise
            payload = None
        count = payload.get("count") if isinstance(payload, dict) else None
        if isinstance(count, int) and not isinstance(count, bool):
            return count
        notifications = await self.list(user, refresh=refresh)
        return sum(1 for notification in notifications if not notification.read)

    async def mark_read(self, ids: list[str]) -> int:
        """Mark notifications read and return how many actually changed."""
        unread = [
            notification_id
            for notification_id in dict.fromkeys(ids)
            if self._is_unread(notification_id)
        ]
        if not unread:
            return 0
        remote_ids = [nid for nid in unread if not nid.startswith("local-")]
        if remote_ids:
            await self.gateway.request(
                "/notifications/read", "PUT", {"notificationIds": remote_ids}
            )
            self.cache.invalidate(NOTIFICATIONS_FAMILY)
        for notification_id in unread:
            self._by_id[notification_id] = replace(
                self._by_id[notification_id], read=True
            )
        return len(unread)

    def get(self, notification_id: str) -> Notification | None:
        return self._by_id.get(notification_id)

    def for_win(self, win_id: str) -> Notification | None:
        notification_id = self._by_win.get(win_id)
        return self._by_id.get(notification_id) if notification_id else None

    def _is_unread(self, notification_id: str) -> bool:
        notification = self._by_id.get(notification_id)
        return notification is not None and not notification.read

    def reset(self) -> None:
        """Forget every notification, e.g. when the session ends."""
        self._by_id.clear()
        self._by_win.clear()

    async def _fetch(self) -> list[object]:
        payload = await self.gateway.request("/notifications")
        return payload if isinstance(payload, list) else []

    def _merge(self, incoming: Notification) -> None:
        existing_id = self._by_win.get(incoming.win_id)
        existing = self._by_id.get(existing_id) if existing_id else None
        if existing is not None:
            if existing.read and not incoming.read:
                incoming = replace(incoming, read=True)
            if existing.id != incoming.id:
                del self._by_id[existing.id]
        self._store(incoming)

    def _store(self, notification: Notification) -> None:
        self._by_id[notification.id] = notification
        self._by_win[notification.win_id] = notification.id
