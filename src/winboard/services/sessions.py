"""Authenticated session lifecycle: login, revalidation, logout."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

import pydantic

from winboard.adapters.session_store import SessionStore
from winboard.adapters.wire_models import LoginResponse
from winboard.domain.errors import GatewayError, ServerFault, ValidationError
from winboard.domain.session import Session, StoredSession, UserIdentity
from winboard.services.context import ClientContext
from winboard.services.gateway import RequestGateway
from winboard.services.middleware import SignedRequest

VERIFY_INTERVAL_SECONDS = 5 * 60

_logger = logging.getLogger(__name__)


@dataclass
class SessionManager:
    """Owns the single authenticated identity of the process.

    ``teardown`` is the only way a session ends. It is registered as the
    gateway's unauthorized hook so a 401 from any endpoint lands here too.
    """

    gateway: RequestGateway
    store: SessionStore
    context: ClientContext
    verify_interval_seconds: float = VERIFY_INTERVAL_SECONDS
    monotonic: Callable[[], float] = time.monotonic
    _timer: asyncio.Task[None] | None = field(default=None, init=False)
    _inflight: asyncio.Task[bool] | None = field(default=None, init=False)
    _inflight_token: str | None = field(default=None, init=False)
    _last_checked: float | None = field(default=None, init=False)
    _background: set[asyncio.Task[None]] = field(default_factory=set, init=False)
    _teardown_hooks: list[Callable[[], None]] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        self.gateway.on_unauthorized(self.teardown)

    def on_teardown(self, hook: Callable[[], None]) -> None:
        """Register a callback run whenever the session ends."""
        self._teardown_hooks.append(hook)

    @property
    def current(self) -> Session | None:
        return self.context.session

    @property
    def is_authenticated(self) -> bool:
        return self.context.session is not None

    @property
    def is_admin(self) -> bool:
        return self.context.session is not None and self.context.session.is_admin

    @property
    def token(self) -> str | None:
        return self.context.token

    async def initialize(self) -> bool:
        """Restore a persisted session if the backend still accepts its token."""
        stored = self.store.load()
        if stored is None:
            return False
        try:
            valid = await self._check_token(stored.token)
        except GatewayError as exc:
            _logger.info("Persisted session rejected: %s", exc.message)
            valid = False
        if not valid:
            self.teardown()
            return False
        self._activate(Session(token=stored.token, user=stored.user), persist=False)
        return True

    async def login(self, username: str, password: str) -> Session:
        """Authenticate and make the result the only active session."""
        if not username.strip() or not password:
            raise ValidationError("Username and password are required")
        payload = await self.gateway.request(
            "/login",
            "POST",
            {"username": username, "password": password},
            sensitive_fields={"password"},
        )
        try:
            response = LoginResponse.model_validate(payload)
        except pydantic.ValidationError:
            raise ServerFault("Malformed login response") from None
        if self.context.session is not None:
            self.teardown()
        session = self._activate(
            Session(token=response.token, user=response.user.to_identity()),
            persist=True,
        )
        _logger.info("Logged in as %s", session.username)
        return session

    async def register(
        self,
        username: str,
        password: str,
        profile_picture: tuple[str, bytes, str] | None = None,
    ) -> None:
        """Create an account. The caller logs in separately afterwards."""
        if not username.strip() or not password:
            raise ValidationError("Username and password are required")
        if profile_picture is None:
            await self.gateway.request(
                "/register",
                "POST",
                {"username": username, "password": password},
                sensitive_fields={"password"},
            )
            return
        await self.gateway.request(
            "/register",
            "POST",
            data={"username": username, "password": password},
            files={"profilePicture": profile_picture},
        )

    async def verify(self, *, force: bool = False) -> bool:
        """Confirm the active token with the backend.

        At most one check runs at a time and concurrent callers share its
        result. Unless ``force`` is set, a check that succeeded less than
        ``verify_interval_seconds`` ago is reused instead of calling out.
        """
        session = self.context.session
        if session is None:
            return False
        if self._inflight is None or self._inflight_token != session.token:
            if not force and self._recently_checked():
                return True
            self._inflight = asyncio.create_task(self._run_verify(session.token))
            self._inflight_token = session.token
        return await asyncio.shield(self._inflight)

    async def tick(self) -> None:
        """One revalidation timer tick; a no-op while a check is in flight."""
        if self._inflight is not None:
            return
        await self.verify(force=True)

    async def logout(self) -> None:
        """End the session locally and notify the backend without waiting."""
        if self.context.session is None:
            self.teardown()
            return
        request = self.gateway.prepare("/logout", "POST")
        self.teardown()
        task = asyncio.create_task(self._send_logout(request))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def teardown(self) -> None:
        """Clear token, user, persisted state and cache; stop the timer."""
        had_session = self.context.session is not None
        self.context.session = None
        self._last_checked = None
        self._inflight = None
        self._inflight_token = None
        self.store.clear()
        self.context.cache.clear_all()
        self._cancel_timer()
        for hook in self._teardown_hooks:
            hook()
        if had_session:
            _logger.info("Session ended")

    def apply_identity_update(
        self, user: UserIdentity, token: str | None = None
    ) -> None:
        """Replace the user projection (and token) after a profile change."""
        session = self.context.session
        if session is None:
            return
        updated = replace(session, user=user, token=token or session.token)
        self.context.session = updated
        self.store.save(StoredSession(token=updated.token, user=updated.user))

    async def aclose(self) -> None:
        """Stop the timer and wait for fire-and-forget calls to finish."""
        self._cancel_timer()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _activate(self, session: Session, *, persist: bool) -> Session:
        active = replace(session, last_verified_at=datetime.now(tz=UTC))
        self.context.session = active
        self._last_checked = self.monotonic()
        if persist:
            self.store.save(StoredSession(token=session.token, user=session.user))
        self._start_timer()
        return active

    def _recently_checked(self) -> bool:
        if self._last_checked is None:
            return False
        return self.monotonic() - self._last_checked < self.verify_interval_seconds

    async def _check_token(self, token: str) -> bool:
        request = self.gateway.prepare("/auth/verify")
        request = replace(
            request, headers={**request.headers, "Authorization": f"Bearer {token}"}
        )
        await self.gateway.send(request)
        return True

    async def _run_verify(self, token: str) -> bool:
        try:
            valid = await self._check_token(token)
        except GatewayError as exc:
            _logger.warning("Session verification failed: %s", exc.message)
            valid = False
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None
                self._inflight_token = None
        session = self.context.session
        if session is None or session.token != token:
            return valid
        if valid:
            self._last_checked = self.monotonic()
            self.context.session = replace(
                session, last_verified_at=datetime.now(tz=UTC)
            )
        else:
            self.teardown()
        return valid

    async def _send_logout(self, request: SignedRequest) -> None:
        try:
            await self.gateway.send(request)
        except GatewayError as exc:
            _logger.info("Remote logout failed: %s", exc.message)

    def _start_timer(self) -> None:
        self._cancel_timer()
        self._timer = asyncio.create_task(self._revalidate_periodically())

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _revalidate_periodically(self) -> None:
        while self.context.session is not None:
            await asyncio.sleep(self.verify_interval_seconds)
            await self.tick()
