"""Error types raised by the proxy layer.

Every error carries the HTTP status it is reported with and renders to the
JSON payload returned to callers (always at least ``{"error": message}``).
"""

from typing import Any, Optional


class ProxyError(Exception):
    """Base class for errors surfaced by the proxy endpoints.

    Attributes:
        status_code: HTTP status reported to the caller
        message: Human-readable error message
        details: Optional diagnostic payload (e.g. the remote JSON body)
        extra: Additional top-level payload keys
    """

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        details: Any = None,
        **extra: Any
    ):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        self.extra = extra
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        """Render the JSON body returned to the caller."""
        payload: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        payload.update(self.extra)
        return payload

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status_code={self.status_code}, message={self.message!r})"


class Unauthorized(ProxyError):
    """No API key was configured or supplied."""
    status_code = 401
    default_message = (
        "API key is not configured. Enter an API key on the main page "
        "or set FREEPIK_API_KEY in the environment."
    )


class InvalidRequest(ProxyError):
    """The caller sent a request the proxy cannot act on."""
    status_code = 400
    default_message = "Invalid request"


class UnsupportedMediaType(InvalidRequest):
    default_message = (
        "Unsupported file format. Use JPG/PNG/WEBP for images or MP4/MOV/WEBM for videos."
    )


class PayloadTooLarge(InvalidRequest):
    default_message = "File is too large."


class UpstreamError(ProxyError):
    """The remote service answered with something the proxy cannot use."""
    status_code = 502
    default_message = "Upstream service returned an invalid response. Please try again."


class UpstreamFailure(ProxyError):
    """The remote service reported an error with a valid JSON body."""
    status_code = 502
    default_message = "API request failed"


class NotFound(ProxyError):
    status_code = 404
    default_message = "Task not found"


class RateLimited(ProxyError):
    status_code = 429
    default_message = "Too many requests. Please slow down."


class InternalError(ProxyError):
    status_code = 500
