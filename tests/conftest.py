"""Shared test fixtures."""

from dataclasses import dataclass, field

import httpx
import pytest

from tests.fake_backend import (
    BASE_URL,
    BackendState,
    backend_client,
    create_backend,
    seeded_state,
)
from winboard.adapters.session_store import SessionStore
from winboard.config import Settings
from winboard.containers import AppContainer, build_container
from winboard.domain.session import StoredSession
from winboard.services.context import ClientContext
from winboard.services.gateway import RequestGateway
from winboard.services.signing import FieldCipher, RequestSigner

SIGNING_KEY = "test-signing-key"


@dataclass
class InMemorySessionStore(SessionStore):
    """Session store that records every write for assertions."""

    stored: StoredSession | None = None
    saves: list[StoredSession] = field(default_factory=list)
    clears: int = 0

    def load(self) -> StoredSession | None:
        return self.stored

    def save(self, session: StoredSession) -> None:
        self.stored = session
        self.saves.append(session)

    def clear(self) -> None:
        self.stored = None
        self.clears += 1


@dataclass
class FakeClock:
    """Manually advanced monotonic clock."""

    seconds: float = 1_000.0

    def monotonic(self) -> float:
        return self.seconds

    def advance(self, seconds: float) -> None:
        self.seconds += seconds


def mock_gateway(
    handler,  # type: ignore[no-untyped-def]
    context: ClientContext | None = None,
    **kwargs,  # type: ignore[no-untyped-def]
) -> RequestGateway:
    """Gateway backed by ``httpx.MockTransport``."""
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url=BASE_URL
    )
    return RequestGateway(
        http_client=client,
        signer=RequestSigner(SIGNING_KEY),
        context=context or ClientContext(),
        **kwargs,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_base_url=BASE_URL,
        request_signing_key=SIGNING_KEY,
        session_file=None,
        environment="test",
    )


@pytest.fixture
def cipher() -> FieldCipher:
    return FieldCipher.from_secret(SIGNING_KEY)


@pytest.fixture
def backend() -> BackendState:
    return seeded_state()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def container(
    settings: Settings, backend: BackendState, session_store: InMemorySessionStore
) -> AppContainer:
    app = create_backend(backend, SIGNING_KEY)
    return build_container(
        settings, http_client=backend_client(app), session_store=session_store
    )
