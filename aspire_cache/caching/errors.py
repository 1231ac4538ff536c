"""Exceptions for the file cache.

Cacheability and cache misses are expected outcomes used for control flow.
Mark errors signal violations of the in-progress locking protocol.
Read, write and remove errors wrap filesystem and API failures.
"""


class CacheError(Exception):
    """Base exception for all cache errors.

    Attributes:
        url: URL of the object concerned, if known.
        path: Filesystem path concerned, if any.
    """

    def __init__(
        self, message: str, url: str | None = None, path: str | None = None
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            url: URL of the object concerned.
            path: Filesystem path concerned.
        """
        self.url = url
        self.path = path
        super().__init__(message)


class NotCacheable(CacheError):
    """Raised when a URL is outside the tenancy or of an excluded type."""


class CacheMiss(CacheError):
    """Raised when a requested object is not present in the cache."""


class MarkError(CacheError):
    """Raised when an in-progress marker cannot be created."""


class MarkedError(CacheError):
    """Raised when an entry is already marked as in-progress."""


class UnmarkError(CacheError):
    """Raised when an in-progress marker cannot be removed."""


class ReadError(CacheError):
    """Raised when data cannot be read from the cache or the API."""


class WriteError(CacheError):
    """Raised when data cannot be written to the cache."""


class RemoveError(CacheError):
    """Raised when data cannot be removed from the cache."""
