"""Dependency container wiring for the client."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from winboard.adapters.session_store import (
    JsonFileSessionStore,
    MemorySessionStore,
    SessionStore,
)
from winboard.app_logging import configure_logging
from winboard.config import Settings, parse_sensitive_fields
from winboard.services.context import ClientContext
from winboard.services.gateway import RequestGateway
from winboard.services.moderation import ModerationWorkflow
from winboard.services.notifications import NotificationCenter
from winboard.services.profiles import ProfileService
from winboard.services.sessions import SessionManager
from winboard.services.signing import FieldCipher, RequestSigner
from winboard.services.wins import WinService


@dataclass
class AppContainer:
    """Holds client-wide dependencies."""

    settings: Settings
    context: ClientContext
    gateway: RequestGateway
    session_manager: SessionManager
    win_service: WinService
    moderation: ModerationWorkflow
    notification_center: NotificationCenter
    profile_service: ProfileService
    close_resources: Callable[[], Awaitable[None]]


def build_container(
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    session_store: SessionStore | None = None,
) -> AppContainer:
    """Create the default dependency container."""
    configure_logging()
    resolved_settings = settings or Settings()
    context = ClientContext()
    client = http_client or httpx.AsyncClient(
        base_url=resolved_settings.api_base_url,
        timeout=resolved_settings.request_timeout_seconds,
    )
    cipher = None
    if resolved_settings.encrypt_sensitive_fields:
        cipher = FieldCipher.from_secret(resolved_settings.request_signing_key)
    gateway = RequestGateway(
        http_client=client,
        signer=RequestSigner(resolved_settings.request_signing_key),
        context=context,
        cipher=cipher,
        sensitive_field_filter=parse_sensitive_fields(
            resolved_settings.sensitive_fields
        ),
        client_version=resolved_settings.client_version,
        timeout_seconds=resolved_settings.request_timeout_seconds,
    )
    if session_store is None:
        session_store = (
            JsonFileSessionStore(resolved_settings.session_file)
            if resolved_settings.session_file
            else MemorySessionStore()
        )
    session_manager = SessionManager(
        gateway=gateway,
        store=session_store,
        context=context,
        verify_interval_seconds=resolved_settings.verify_interval_seconds,
    )
    win_service = WinService(gateway=gateway, cache=context.cache)
    notification_center = NotificationCenter(gateway=gateway, cache=context.cache)
    session_manager.on_teardown(notification_center.reset)
    moderation = ModerationWorkflow(
        wins=win_service,
        gateway=gateway,
        cache=context.cache,
        notifications=notification_center,
    )
    session_manager.on_teardown(moderation.reset)
    profile_service = ProfileService(
        gateway=gateway, cache=context.cache, sessions=session_manager
    )

    async def close_resources() -> None:
        await session_manager.aclose()
        await gateway.close()

    return AppContainer(
        settings=resolved_settings,
        context=context,
        gateway=gateway,
        session_manager=session_manager,
        win_service=win_service,
        moderation=moderation,
        notification_center=notification_center,
        profile_service=profile_service,
        close_resources=close_resources,
    )
