"""Request and response pipeline stages used by the gateway.

Request stages map a ``SignedRequest`` to a new ``SignedRequest``; response
stages map an ``httpx.Response`` to itself or raise a ``GatewayError``. Stages
run in list order.
"""

import email.utils
import functools
import logging
import re
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import TypeVar

import httpx

from winboard.domain.errors import (
    Conflict,
    GatewayError,
    RateLimited,
    RequestRejected,
    ServerFault,
    Unauthorized,
    ValidationError,
)
from winboard.services.signing import FieldCipher, RequestSigner

_URL_PATTERN = re.compile(r"https?://\S+")

T = TypeVar("T")

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedRequest:
    """An outbound call with its auth, timing and signature headers."""

    method: str
    endpoint: str
    headers: dict[str, str] = field(default_factory=dict)
    json_body: dict[str, object] | None = None
    data: dict[str, str] | None = None
    files: dict[str, tuple[str, bytes, str]] | None = None
    sensitive_fields: frozenset[str] = frozenset()
    timestamp_ms: int | None = None
    signature: str | None = None


RequestStage = Callable[[SignedRequest], SignedRequest]
ResponseStage = Callable[[httpx.Response], httpx.Response]


def compose(stages: Iterable[Callable[[T], T]]) -> Callable[[T], T]:
    """Compose stages left to right into a single callable."""
    ordered = list(stages)

    def run(value: T) -> T:
        return functools.reduce(lambda acc, stage: stage(acc), ordered, value)

    return run


def now_ms() -> int:
    """Return the current epoch time in milliseconds."""
    return time.time_ns() // 1_000_000


def stamp_time(clock: Callable[[], int] = now_ms) -> RequestStage:
    """Capture the request timestamp and expose it as ``X-Request-Time``."""

    def stage(request: SignedRequest) -> SignedRequest:
        timestamp_ms = clock()
        headers = {**request.headers, "X-Request-Time": str(timestamp_ms)}
        return replace(request, headers=headers, timestamp_ms=timestamp_ms)

    return stage


def attach_client_version(version: str) -> RequestStage:
    def stage(request: SignedRequest) -> SignedRequest:
        headers = {**request.headers, "X-Client-Version": version}
        return replace(request, headers=headers)

    return stage


def attach_bearer(token_provider: Callable[[], str | None]) -> RequestStage:
    """Add ``Authorization: Bearer`` when a session is active."""

    def stage(request: SignedRequest) -> SignedRequest:
        token = token_provider()
        if not token:
            return request
        headers = {**request.headers, "Authorization": f"Bearer {token}"}
        return replace(request, headers=headers)

    return stage


def sign_request(signer: RequestSigner) -> RequestStage:
    """Attach the MAC over the endpoint and captured timestamp."""

    def stage(request: SignedRequest) -> SignedRequest:
        if request.timestamp_ms is None:
            raise ValueError("Request must be timestamped before signing")
        signature = signer.sign(request.endpoint, request.timestamp_ms)
        headers = {**request.headers, "X-Request-Signature": signature}
        return replace(request, headers=headers, signature=signature)

    return stage


def protect_fields(
    cipher: FieldCipher, allowed: frozenset[str] | None = None
) -> RequestStage:
    """Obfuscate the requested JSON body fields.

    When ``allowed`` is given, only fields present in both sets are touched.
    """

    def stage(request: SignedRequest) -> SignedRequest:
        fields = request.sensitive_fields
        if allowed is not None:
            fields = fields & allowed
        if not fields or request.json_body is None:
            return request
        return replace(request, json_body=cipher.protect(request.json_body, fields))

    return stage


def log_response(method: str, endpoint: str) -> ResponseStage:
    def stage(response: httpx.Response) -> httpx.Response:
        _logger.debug("%s %s -> %s", method, endpoint, response.status_code)
        return response

    return stage


def notify_unauthorized(hooks: Iterable[Callable[[], None]]) -> ResponseStage:
    """Run session teardown hooks on a 401 before it is raised."""

    def stage(response: httpx.Response) -> httpx.Response:
        if response.status_code == httpx.codes.UNAUTHORIZED:
            for hook in hooks:
                hook()
        return response

    return stage


def classify_status(base_url: str | None = None) -> ResponseStage:
    """Raise the matching ``GatewayError`` for non-success responses."""

    def stage(response: httpx.Response) -> httpx.Response:
        status = response.status_code
        if status < httpx.codes.BAD_REQUEST:
            return response
        message = sanitize_message(_server_message(response), base_url)
        raise _error_for_status(status, message, response)

    return stage


def _error_for_status(
    status: int, message: str | None, response: httpx.Response
) -> GatewayError:
    if status == httpx.codes.UNAUTHORIZED:
        return Unauthorized(message, status=status)
    if status == httpx.codes.TOO_MANY_REQUESTS:
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        return RateLimited(message, status=status, retry_after=retry_after)
    if status == httpx.codes.CONFLICT:
        return Conflict(message, status=status)
    if status in {httpx.codes.BAD_REQUEST, httpx.codes.UNPROCESSABLE_ENTITY}:
        return ValidationError(message, status=status)
    if status >= httpx.codes.INTERNAL_SERVER_ERROR:
        return ServerFault(message, status=status)
    return RequestRejected(message, status=status)


def _server_message(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("detail")
        if isinstance(message, str):
            return message
    return None


def sanitize_message(message: str | None, base_url: str | None = None) -> str | None:
    """Strip backend addresses from a message before it leaves the client."""
    if message is None:
        return None
    if base_url:
        message = message.replace(base_url.rstrip("/"), "")
    return _URL_PATTERN.sub("[redacted]", message)


def parse_retry_after(raw: str | None) -> float | None:
    """Parse a ``Retry-After`` header given in seconds or as an HTTP date."""
    if raw is None:
        return None
    value = raw.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        retry_at = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)
    return max((retry_at - datetime.now(tz=UTC)).total_seconds(), 0.0)
