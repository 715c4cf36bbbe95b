"""
Service layer exceptions.

Every failure surfaced by FetchClient is a ServiceError. The UI renders
RemoteError sub-kinds differently, so they carry the HTTP status.
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(message)


class RequestCancelledError(ServiceError):
    """The caller's cancellation signal fired before a result was delivered."""

    def __init__(self, key: str | None = None):
        super().__init__("Request aborted", key=key)


class NetworkError(ServiceError):
    """No response was received (offline, DNS failure, connection reset)."""

    status = 0

    def __init__(
        self,
        message: str = "Network error: please check your internet connection.",
        key: str | None = None,
    ):
        super().__init__(message, key=key)


class RequestTimeoutError(NetworkError):
    """Request timed out."""

    def __init__(self, timeout: float, key: str | None = None):
        self.timeout = timeout
        super().__init__(f"Request timed out after {timeout}s", key=key)


class RemoteError(ServiceError):
    """The API answered with a non-success HTTP status."""

    default_message = "Remote API error."

    def __init__(self, status: int, reason: str = "", key: str | None = None):
        self.status = status
        self.reason = reason or self.default_message
        super().__init__(f"API Error: {status} {self.reason}", key=key)

    @classmethod
    def from_status(
        cls, status: int, reason: str = "", key: str | None = None
    ) -> "RemoteError":
        """Build the most specific error kind for an HTTP status."""
        error_cls = _STATUS_ERRORS.get(status)
        if error_cls is not None:
            return error_cls(status, key=key)
        return cls(status, reason, key=key)


class ResourceNotFoundError(RemoteError):
    """404 from the API."""

    default_message = "Resource not found."


class InternalServerError(RemoteError):
    """500 from the API."""

    default_message = "Internal server error."


class ServiceUnavailableError(RemoteError):
    """503 from the API."""

    default_message = "Service unavailable."


class MalformedResponseError(RemoteError):
    """The response body could not be decoded as expected."""

    default_message = "Malformed response."


_STATUS_ERRORS: dict[int, type[RemoteError]] = {
    404: ResourceNotFoundError,
    500: InternalServerError,
    503: ServiceUnavailableError,
}
