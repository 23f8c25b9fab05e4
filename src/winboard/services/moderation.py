"""Moderation state machine for submitted wins.

A win starts ``pending`` and receives exactly one verdict, ``approved`` or
``rejected``. Both verdicts are terminal.
"""

import logging
from dataclasses import dataclass, field, replace
from urllib.parse import quote

import pydantic

from winboard.adapters.wire_models import WinPayload
from winboard.domain.errors import Conflict, InvalidTransition, ValidationError
from winboard.domain.wins import Win, WinStatus, WinSubmission
from winboard.services.cache import ResponseCache
from winboard.services.gateway import RequestGateway
from winboard.services.notifications import NOTIFICATIONS_FAMILY, NotificationCenter
from winboard.services.wins import PROFILES_FAMILY, WINS_FAMILY, WinService

DEFAULT_COMMENTS = {
    WinStatus.APPROVED: "Approved by admin",
    WinStatus.REJECTED: "Rejected by admin",
}

_logger = logging.getLogger(__name__)


@dataclass
class ModerationWorkflow:
    """Carries a win from ``pending`` to its verdict and notifies its creator."""

    wins: WinService
    gateway: RequestGateway
    cache: ResponseCache
    notifications: NotificationCenter
    _decided: dict[str, Win] = field(default_factory=dict)
    _deciding: set[str] = field(default_factory=set)

    async def submit(self, submission: WinSubmission) -> Win:
        """Submit a win; it enters the workflow as ``pending``."""
        return await self.wins.submit(submission)

    async def decide(
        self, win_id: str | int, verdict: WinStatus | str, comment: str | None = None
    ) -> Win:
        """Apply a verdict to a pending win.

        Raises ``InvalidTransition`` when the win is not pending, including
        when it was already decided here or by someone else.
        """
        status = _parse_verdict(verdict)
        win_id = str(win_id)
        if win_id in self._decided or win_id in self._deciding:
            raise InvalidTransition(f"Win {win_id} has already been moderated")
        self._deciding.add(win_id)
        try:
            win = await self._pending_win(win_id)
            if comment is None:
                comment = DEFAULT_COMMENTS[status]
            decided = await self._persist(win, status, comment)
            self._decided[win_id] = decided
        finally:
            self._deciding.discard(win_id)
        self.notifications.emit(decided, status, comment)
        _logger.info("Win %s moderated: %s", win_id, status.value)
        return decided

    def decision_for(self, win_id: str | int) -> Win | None:
        return self._decided.get(str(win_id))

    def reset(self) -> None:
        """Forget recorded decisions, e.g. when the session ends."""
        self._decided.clear()

    async def _pending_win(self, win_id: str) -> Win:
        for win in await self.wins.list_pending(refresh=True):
            if win.id == win_id:
                return win
        raise InvalidTransition(f"Win {win_id} is not pending moderation")

    async def _persist(self, win: Win, status: WinStatus, comment: str) -> Win:
        try:
            payload = await self.gateway.request(
                f"/wins/{quote(win.id, safe='')}/moderate",
                "PUT",
                {"status": status.value, "moderationComment": comment},
                sensitive_fields={"moderationComment"},
            )
        except Conflict as exc:
            raise InvalidTransition(exc.message, status=exc.status) from None
        self.cache.invalidate(WINS_FAMILY)
        self.cache.invalidate(PROFILES_FAMILY)
        self.cache.invalidate(NOTIFICATIONS_FAMILY)
        decided = replace(win, status=status, moderation_comment=comment)
        try:
            remote = WinPayload.model_validate(payload).to_domain()
        except pydantic.ValidationError:
            return decided
        return replace(remote, moderation_comment=comment)


def _parse_verdict(verdict: WinStatus | str) -> WinStatus:
    try:
        status = WinStatus(verdict)
    except ValueError:
        raise ValidationError(f"Unknown verdict: {verdict}") from None
    if not status.is_terminal:
        raise ValidationError("A verdict must be approved or rejected")
    return status
