"""Tests for the session lifecycle."""

import asyncio

import httpx
import pytest

from tests.conftest import FakeClock, InMemorySessionStore, mock_gateway
from tests.fake_backend import BackendState
from winboard.containers import AppContainer
from winboard.domain.errors import Unauthorized, ValidationError
from winboard.domain.session import Session, StoredSession, UserIdentity
from winboard.services.context import ClientContext
from winboard.services.sessions import SessionManager

ALICE = UserIdentity(id="user-alice", username="alice", role="user")


def _manager_with_handler(
    handler,  # type: ignore[no-untyped-def]
    clock: FakeClock | None = None,
    store: InMemorySessionStore | None = None,
    **kwargs,  # type: ignore[no-untyped-def]
) -> SessionManager:
    context = ClientContext()
    gateway = mock_gateway(handler, context=context)
    return SessionManager(
        gateway=gateway,
        store=store or InMemorySessionStore(),
        context=context,
        monotonic=(clock or FakeClock()).monotonic,
        **kwargs,
    )


def test_login_persists_token_and_minimal_user(
    container: AppContainer,
    backend: BackendState,
    session_store: InMemorySessionStore,
) -> None:
    manager = container.session_manager

    session = asyncio.run(manager.login("alice", "wonderland"))

    assert manager.is_authenticated
    assert not manager.is_admin
    assert manager.current is session
    assert session.user == ALICE
    assert manager.token == session.token
    assert session.last_verified_at is not None
    assert session_store.stored == StoredSession(token=session.token, user=ALICE)
    assert backend.bodies[0]["username"] == "alice"
    assert backend.bodies[0]["password"] != "wonderland"


def test_login_requires_both_fields(
    container: AppContainer, backend: BackendState
) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(container.session_manager.login("alice", ""))

    assert backend.calls == []


def test_failed_login_surfaces_server_message(container: AppContainer) -> None:
    with pytest.raises(Unauthorized) as excinfo:
        asyncio.run(container.session_manager.login("alice", "wrong"))

    assert excinfo.value.message == "Invalid credentials"
    assert not container.session_manager.is_authenticated


def test_second_login_replaces_first_session(
    container: AppContainer, session_store: InMemorySessionStore
) -> None:
    manager = container.session_manager

    async def scenario() -> tuple[Session, Session]:
        first = await manager.login("alice", "wonderland")
        second = await manager.login("admin", "hunter2")
        return first, second

    first, second = asyncio.run(scenario())

    assert manager.current == second
    assert manager.is_admin
    assert first.token != second.token
    assert session_store.clears == 1
    assert session_store.stored is not None
    assert session_store.stored.user.username == "admin"


def test_logout_clears_locally_before_remote_call(
    container: AppContainer,
    backend: BackendState,
    session_store: InMemorySessionStore,
) -> None:
    manager = container.session_manager

    async def scenario() -> tuple[int, int]:
        session = await manager.login("alice", "wonderland")
        await container.win_service.list_wins("community")
        await manager.logout()
        immediately = backend.count("POST", "/logout")
        assert manager.current is None
        assert manager.token is None
        assert session_store.stored is None
        assert container.context.cache.families() == set()
        await container.close_resources()
        assert session.token not in backend.tokens
        return immediately, backend.count("POST", "/logout")

    immediately, eventually = asyncio.run(scenario())

    assert immediately == 0
    assert eventually == 1


def test_logout_tolerates_remote_failure(
    container: AppContainer, backend: BackendState
) -> None:
    manager = container.session_manager
    backend.force("POST", "/logout", 500, {"message": "boom"})

    async def scenario() -> None:
        await manager.login("alice", "wonderland")
        await manager.logout()
        await container.close_resources()

    asyncio.run(scenario())

    assert manager.current is None
    assert backend.count("POST", "/logout") == 1


def test_unauthorized_anywhere_tears_down_session(
    container: AppContainer,
    backend: BackendState,
    session_store: InMemorySessionStore,
) -> None:
    manager = container.session_manager

    async def scenario() -> None:
        await manager.login("alice", "wonderland")
        await container.win_service.list_wins()
        backend.tokens.clear()
        await container.notification_center.list("alice")

    with pytest.raises(Unauthorized):
        asyncio.run(scenario())

    assert manager.current is None
    assert session_store.stored is None
    assert container.context.cache.families() == set()


def test_verify_failure_tears_down(
    container: AppContainer, backend: BackendState
) -> None:
    manager = container.session_manager

    async def scenario() -> bool:
        await manager.login("alice", "wonderland")
        backend.tokens.clear()
        return await manager.verify(force=True)

    assert asyncio.run(scenario()) is False
    assert manager.current is None


def test_verify_without_session_is_false(container: AppContainer) -> None:
    assert asyncio.run(container.session_manager.verify()) is False


def test_initialize_restores_valid_session(
    container: AppContainer,
    backend: BackendState,
    session_store: InMemorySessionStore,
) -> None:
    backend.tokens["stored-token"] = "alice"
    session_store.stored = StoredSession(token="stored-token", user=ALICE)

    restored = asyncio.run(container.session_manager.initialize())

    assert restored is True
    assert container.session_manager.token == "stored-token"
    assert backend.count("GET", "/auth/verify") == 1
    assert session_store.saves == []


def test_initialize_discards_revoked_session(
    container: AppContainer, session_store: InMemorySessionStore
) -> None:
    session_store.stored = StoredSession(token="revoked", user=ALICE)

    restored = asyncio.run(container.session_manager.initialize())

    assert restored is False
    assert container.session_manager.current is None
    assert session_store.stored is None


def test_initialize_without_stored_session(
    container: AppContainer, backend: BackendState
) -> None:
    assert asyncio.run(container.session_manager.initialize()) is False
    assert backend.calls == []


def test_concurrent_verifies_share_one_request() -> None:
    clock = FakeClock()
    calls: list[str] = []

    async def scenario() -> list[bool]:
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            await release.wait()
            return httpx.Response(200, json={"valid": True})

        manager = _manager_with_handler(handler, clock)
        manager.context.session = Session(token="T1", user=ALICE)
        tasks = [asyncio.create_task(manager.verify()) for _ in range(3)]
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        release.set()
        return await asyncio.gather(*tasks)

    results = asyncio.run(scenario())

    assert results == [True, True, True]
    assert calls == ["/api/auth/verify"]


def test_verify_is_rate_limited_unless_forced() -> None:
    clock = FakeClock()
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(200, json={"valid": True})

    manager = _manager_with_handler(handler, clock, verify_interval_seconds=300)
    manager.context.session = Session(token="T1", user=ALICE)

    async def scenario() -> None:
        assert await manager.verify()
        assert await manager.verify()
        clock.advance(299)
        assert await manager.verify()
        assert len(calls) == 1
        clock.advance(2)
        assert await manager.verify()
        assert len(calls) == 2
        assert await manager.verify(force=True)
        assert len(calls) == 3

    asyncio.run(scenario())


def test_tick_skips_while_verify_in_flight() -> None:
    calls: list[str] = []

    async def scenario() -> bool:
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            await release.wait()
            return httpx.Response(200, json={"valid": True})

        manager = _manager_with_handler(handler)
        manager.context.session = Session(token="T1", user=ALICE)
        pending = asyncio.create_task(manager.verify(force=True))
        await asyncio.sleep(0)
        await manager.tick()
        release.set()
        return await pending

    assert asyncio.run(scenario()) is True
    assert len(calls) == 1


def test_timer_revalidates_until_teardown() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(200, json={"valid": True})

    store = InMemorySessionStore(stored=StoredSession(token="T1", user=ALICE))
    manager = _manager_with_handler(handler, store=store, verify_interval_seconds=0.01)

    async def scenario() -> tuple[int, int]:
        assert await manager.initialize()
        await asyncio.sleep(0.1)
        manager.teardown()
        at_teardown = len(calls)
        await asyncio.sleep(0.1)
        return at_teardown, len(calls)

    at_teardown, later = asyncio.run(scenario())

    assert at_teardown >= 2
    assert later == at_teardown


def test_teardown_runs_hooks(container: AppContainer) -> None:
    events: list[str] = []
    container.session_manager.on_teardown(lambda: events.append("ended"))

    async def scenario() -> None:
        await container.session_manager.login("alice", "wonderland")
        await container.session_manager.logout()
        await container.close_resources()

    asyncio.run(scenario())

    assert events == ["ended"]


def test_register_then_login(container: AppContainer, backend: BackendState) -> None:
    manager = container.session_manager

    async def scenario() -> Session:
        await manager.register("carol", "s3cret")
        picture = ("me.png", b"png", "image/png")
        await manager.register("dave", "pw", profile_picture=picture)
        await manager.login("dave", "pw")
        return await manager.login("carol", "s3cret")

    session = asyncio.run(scenario())

    assert session.username == "carol"
    assert "dave" in backend.users
    assert backend.count("POST", "/register") == 2


def test_verify_for_new_session_ignores_old_check() -> None:
    seen: list[str] = []

    async def scenario() -> tuple[bool, bool]:
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            token = request.headers["Authorization"].removeprefix("Bearer ")
            seen.append(token)
            if token == "T1":
                await release.wait()
                return httpx.Response(200, json={"valid": True})
            return httpx.Response(401, json={"message": "Token expired"})

        manager = _manager_with_handler(handler)
        manager.context.session = Session(token="T1", user=ALICE)
        old_check = asyncio.create_task(manager.verify())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        manager.teardown()
        manager.context.session = Session(token="T2", user=ALICE)
        new_result = await manager.verify()
        release.set()
        return await old_check, new_result

    old_result, new_result = asyncio.run(scenario())

    assert new_result is False
    assert old_result is True
    assert seen == ["T1", "T2"]
