"""Public profiles and account settings."""

from dataclasses import dataclass
from urllib.parse import quote

import pydantic

from winboard.adapters.wire_models import ProfilePayload, SettingsResponse
from winboard.domain.errors import ServerFault, ValidationError
from winboard.domain.profiles import UserProfile
from winboard.domain.session import UserIdentity
from winboard.services.cache import ResponseCache
from winboard.services.gateway import RequestGateway
from winboard.services.sessions import SessionManager
from winboard.services.wins import PROFILES_FAMILY


@dataclass
class ProfileService:
    """Reads profiles through the cache and applies settings changes."""

    gateway: RequestGateway
    cache: ResponseCache
    sessions: SessionManager

    async def get_profile(self, username: str) -> UserProfile:
        """Return a user's public profile."""
        endpoint = f"/users/{quote(username, safe='')}"

        async def fetch() -> UserProfile:
            payload = await self.gateway.request(endpoint)
            return ProfilePayload.model_validate(payload).to_domain()

        return await self.cache.get_or_fetch(
            f"profile:{username}", PROFILES_FAMILY, fetch
        )

    async def update_settings(
        self,
        username: str | None = None,
        profile_picture: tuple[str, bytes, str] | None = None,
    ) -> UserIdentity:
        """Change the signed-in user's name and/or picture."""
        current = self.sessions.current
        data: dict[str, str] = {}
        if username and (current is None or username != current.username):
            data["username"] = username
        files = {"profilePicture": profile_picture} if profile_picture else None
        if not data and files is None:
            raise ValidationError("Nothing to update")
        payload = await self.gateway.request(
            "/users/settings", "PUT", data=data, files=files
        )
        self.cache.invalidate(PROFILES_FAMILY)
        try:
            response = SettingsResponse.model_validate(payload)
        except pydantic.ValidationError:
            raise ServerFault("Malformed settings response") from None
        user = response.user.to_identity()
        self.sessions.apply_identity_update(user, response.token)
        return user
