"""Signed, sanitized access to the backend API."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

from winboard.domain.errors import NetworkUnreachable
from winboard.services.context import ClientContext
from winboard.services.middleware import (
    RequestStage,
    ResponseStage,
    SignedRequest,
    attach_bearer,
    attach_client_version,
    classify_status,
    compose,
    log_response,
    notify_unauthorized,
    now_ms,
    protect_fields,
    sign_request,
    stamp_time,
)
from winboard.services.signing import FieldCipher, RequestSigner

_logger = logging.getLogger(__name__)


@dataclass
class RequestGateway:
    """Builds, signs and dispatches every call to the backend.

    Errors leave the gateway as ``GatewayError`` subclasses. A 401 from any
    endpoint runs the registered unauthorized hooks before it is raised, and
    nothing is ever retried here.
    """

    http_client: httpx.AsyncClient
    signer: RequestSigner
    context: ClientContext
    cipher: FieldCipher | None = None
    sensitive_field_filter: frozenset[str] | None = None
    client_version: str = "1.0"
    timeout_seconds: float = 10.0
    clock: Callable[[], int] = now_ms
    unauthorized_hooks: list[Callable[[], None]] = field(default_factory=list)

    def __post_init__(self) -> None:
        stages: list[RequestStage] = [
            attach_client_version(self.client_version),
            stamp_time(self.clock),
            attach_bearer(lambda: self.context.token),
            sign_request(self.signer),
        ]
        if self.cipher is not None:
            stages.append(protect_fields(self.cipher, self.sensitive_field_filter))
        self.request_stages = stages

    def on_unauthorized(self, hook: Callable[[], None]) -> None:
        """Register a callback run whenever the backend answers 401."""
        self.unauthorized_hooks.append(hook)

    def prepare(  # noqa: PLR0913
        self,
        endpoint: str,
        method: str = "GET",
        body: dict[str, object] | None = None,
        sensitive_fields: frozenset[str] | set[str] | None = None,
        *,
        data: dict[str, str] | None = None,
        files: dict[str, tuple[str, bytes, str]] | None = None,
    ) -> SignedRequest:
        """Return the request with auth, timestamp and signature attached."""
        request = SignedRequest(
            method=method.upper(),
            endpoint=endpoint,
            json_body=body,
            data=data,
            files=files,
            sensitive_fields=frozenset(sensitive_fields or ()),
        )
        return compose(self.request_stages)(request)

    async def send(self, request: SignedRequest) -> object:
        """Dispatch a prepared request and return the decoded response body."""
        response = await self._dispatch(request)
        if response is None:
            raise NetworkUnreachable()
        response = compose(self._response_stages(request))(response)
        return _decode(response)

    async def request(  # noqa: PLR0913
        self,
        endpoint: str,
        method: str = "GET",
        body: dict[str, object] | None = None,
        sensitive_fields: frozenset[str] | set[str] | None = None,
        *,
        data: dict[str, str] | None = None,
        files: dict[str, tuple[str, bytes, str]] | None = None,
    ) -> object:
        """Prepare and send in one step."""
        prepared = self.prepare(
            endpoint, method, body, sensitive_fields, data=data, files=files
        )
        return await self.send(prepared)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _response_stages(self, request: SignedRequest) -> list[ResponseStage]:
        return [
            log_response(request.method, request.endpoint),
            notify_unauthorized(self.unauthorized_hooks),
            classify_status(str(self.http_client.base_url)),
        ]

    async def _dispatch(self, request: SignedRequest) -> httpx.Response | None:
        try:
            return await self.http_client.request(
                request.method,
                request.endpoint,
                headers=request.headers,
                json=request.json_body,
                data=request.data,
                files=request.files,
                timeout=self.timeout_seconds,
            )
        except httpx.RequestError as exc:
            _logger.warning(
                "%s %s unreachable: %s",
                request.method,
                request.endpoint,
                type(exc).__name__,
            )
            return None


def _decode(response: httpx.Response) -> object:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
