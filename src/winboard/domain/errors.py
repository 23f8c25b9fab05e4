"""Error taxonomy for calls crossing the client boundary.

Messages carried by these errors come from the server's ``message`` field or
from a fixed description. They never include request or base URLs.
"""


class GatewayError(Exception):
    """Base class for every failure surfaced by the client."""

    default_message = "Request failed"

    def __init__(self, message: str | None = None, *, status: int | None = None):
        self.message = message or self.default_message
        self.status = status
        super().__init__(self.message)


class Unauthorized(GatewayError):
    """The bearer token was missing, expired, or rejected."""

    default_message = "Unauthorized access"


class RateLimited(GatewayError):
    """The backend asked the client to slow down."""

    default_message = "Rate limit exceeded"

    def __init__(
        self,
        message: str | None = None,
        *,
        status: int | None = 429,
        retry_after: float | None = None,
    ):
        self.retry_after = retry_after
        if message is None and retry_after is not None:
            message = f"Rate limit exceeded. Try again in {retry_after:g} seconds."
        super().__init__(message, status=status)


class Conflict(GatewayError):
    """The requested change conflicts with the resource's current state."""

    default_message = "Conflict"


class InvalidTransition(Conflict):
    """A moderation decision was requested for a win that is not pending."""

    default_message = "Win is not pending moderation"


class NetworkUnreachable(GatewayError):
    """No response was received from the backend."""

    default_message = "Network error occurred"


class ServerFault(GatewayError):
    """The backend failed to process the request."""

    default_message = "An error occurred"


class RequestRejected(GatewayError):
    """The backend refused the request for a reason not covered elsewhere."""

    default_message = "Request rejected"


class ValidationError(GatewayError):
    """Input was invalid; raised before anything is sent when detected locally."""

    default_message = "Invalid request"


def describe_error(exc: BaseException) -> dict[str, object]:
    """Return a UI-safe ``{"status", "message"}`` description of an error."""
    if isinstance(exc, NetworkUnreachable):
        return {"status": 0, "message": exc.message}
    if isinstance(exc, GatewayError):
        status = exc.status if exc.status is not None else -1
        return {"status": status, "message": exc.message}
    return {"status": -1, "message": "Request failed"}
