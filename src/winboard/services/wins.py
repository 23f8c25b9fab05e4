"""Win listings, submission and deletion."""

import logging
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from winboard.adapters.wire_models import WinPayload, parse_wins
from winboard.domain.errors import ValidationError
from winboard.domain.wins import Win, WinSubmission, WinType
from winboard.services.cache import ResponseCache
from winboard.services.gateway import RequestGateway

WINS_FAMILY = "wins"
PROFILES_FAMILY = "profiles"

_logger = logging.getLogger(__name__)


def wins_cache_key(win_type: WinType | str | None) -> str:
    """Cache key for a win listing, e.g. ``wins:community``."""
    if isinstance(win_type, WinType):
        win_type = win_type.value
    return f"wins:{win_type or 'all'}"


@dataclass
class WinService:
    """Reads and writes wins through the gateway with family-scoped caching."""

    gateway: RequestGateway
    cache: ResponseCache

    async def list_wins(self, win_type: WinType | str | None = None) -> list[Win]:
        """Return approved wins, optionally of one type."""
        if isinstance(win_type, WinType):
            win_type = win_type.value
        endpoint = "/wins"
        if win_type:
            endpoint = f"/wins?{httpx.QueryParams({'type': win_type})}"

        async def fetch() -> list[Win]:
            return parse_wins(await self.gateway.request(endpoint))

        return await self.cache.get_or_fetch(
            wins_cache_key(win_type), WINS_FAMILY, fetch
        )

    async def list_pending(self, *, refresh: bool = False) -> list[Win]:
        """Return wins awaiting moderation (admin only on the backend).

        Other clients keep submitting, so callers that act on pending state
        pass ``refresh=True`` to bypass the cached listing.
        """

        async def fetch() -> list[Win]:
            return parse_wins(await self.gateway.request("/wins/pending"))

        return await self.cache.get_or_fetch(
            "wins:pending", WINS_FAMILY, fetch, refresh=refresh
        )

    async def submit(self, submission: WinSubmission) -> Win:
        """Upload a new win; it starts out pending moderation."""
        _validate_submission(submission)
        data = {
            "title": submission.title.strip(),
            "description": submission.description,
            "isEnjayyWin": "true" if submission.is_enjayy_win else "false",
            "kickClipUrl": submission.kick_clip_url or "",
        }
        files = {
            "image": (
                submission.image_filename,
                submission.image,
                submission.image_content_type,
            )
        }
        payload = await self.gateway.request("/wins", "POST", data=data, files=files)
        self._invalidate()
        win = WinPayload.model_validate(payload).to_domain()
        _logger.info("Submitted win %s", win.id)
        return win

    async def update(self, win_id: str, updates: dict[str, object]) -> Win:
        """Edit fields of an existing win, e.g. ``{"title": ...}``."""
        if not updates:
            raise ValidationError("Nothing to update")
        payload = await self.gateway.request(
            f"/wins/{quote(str(win_id), safe='')}", "PUT", dict(updates)
        )
        self._invalidate()
        return WinPayload.model_validate(payload).to_domain()

    async def delete(self, win_id: str) -> None:
        """Delete a win."""
        await self.gateway.request(f"/wins/{quote(str(win_id), safe='')}", "DELETE")
        self._invalidate()

    def _invalidate(self) -> None:
        self.cache.invalidate(WINS_FAMILY)
        self.cache.invalidate(PROFILES_FAMILY)


def _validate_submission(submission: WinSubmission) -> None:
    if not submission.image:
        raise ValidationError("Please select an image")
    if not submission.title.strip():
        raise ValidationError("A title is required")
