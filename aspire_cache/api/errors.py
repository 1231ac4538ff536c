"""Exceptions raised by the Aspire API clients."""


class APIError(Exception):
    """Raised when an Aspire API call fails.

    Attributes:
        url: The URL of the failed call.
        status_code: HTTP status code, if a response was received.
    """

    def __init__(
        self, message: str, url: str | None = None, status_code: int | None = None
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            url: The URL of the failed call.
            status_code: HTTP status code, if a response was received.
        """
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class APITimeout(APIError):
    """Raised when an Aspire API call times out."""


class APIConnectionError(APIError):
    """Raised when a connection to the Aspire API cannot be established."""


class APIServerError(APIError):
    """Raised on 5xx responses and rate limiting (429)."""
