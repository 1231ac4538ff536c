"""File-based cache of Aspire API objects.

The cache reads through to the linked data and JSON APIs: a cache miss
fetches the object from the API, with retries, and writes it to the cache
before returning it.
"""

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Protocol

import structlog

from aspire_cache.api.errors import (
    APIConnectionError,
    APIError,
    APIServerError,
    APITimeout,
)
from aspire_cache.api.models import APIResponse
from aspire_cache.caching.constants import (
    ALL_TYPES,
    COMPONENT_CACHE,
    DEFAULT_API_RETRY_DELAY,
    DEFAULT_API_TRIES,
    DEFAULT_MODE,
    DEFAULT_PATH,
    MARKER_PREFIX,
)
from aspire_cache.caching.entry import CacheEntry, FileKind
from aspire_cache.caching.errors import (
    CacheMiss,
    NotCacheable,
    ReadError,
    RemoveError,
    WriteError,
)
from aspire_cache.caching.fs import (
    clear_directory,
    make_dirs,
    remove_tree,
    strip_filename_prefix,
)
from aspire_cache.caching.metrics import CacheMetrics
from aspire_cache.retry import (
    SOCKET_EXCEPTIONS,
    HandlerKey,
    HandlerResult,
    RetryConfig,
    RetryEngine,
)


logger = structlog.get_logger()

# API failures which are worth retrying
RETRIABLE_API_ERRORS: tuple[type[Exception], ...] = (
    APITimeout,
    APIConnectionError,
    APIServerError,
    *SOCKET_EXCEPTIONS,
)


class LinkedDataClient(Protocol):
    """The linked data API operations used by the cache."""

    @property
    def tenancy_host(self) -> str:
        """Canonical tenancy host name."""
        ...

    def api_url(self, path: str) -> str:
        """Return a full tenancy URL from a partial object path."""
        ...

    def canonical_url(self, url: str | None) -> str | None:
        """Convert a tenancy URL to its canonical form."""
        ...

    def fetch(self, url: str) -> APIResponse:
        """Fetch an object from the linked data API."""
        ...


class JsonClient(Protocol):
    """The JSON API operations used by the cache."""

    def fetch(
        self,
        path: str,
        headers: dict[str, str] | None = None,
        **params: str | int,
    ) -> APIResponse:
        """Call a JSON API endpoint."""
        ...


def default_retry_config(
    max_tries: int = DEFAULT_API_TRIES,
    delay: float = DEFAULT_API_RETRY_DELAY,
) -> RetryConfig:
    """Return the retry policy for API reads."""
    return RetryConfig(max_tries=max_tries, delay=delay, retriable=RETRIABLE_API_ERRORS)


class Cache:
    """Reads and writes Aspire API data to and from a file-based cache.

    Attributes:
        ld_api: The linked data API client.
        json_api: The JSON API client, if JSON API data is required.
    """

    def __init__(
        self,
        ld_api: LinkedDataClient,
        json_api: JsonClient | None = None,
        path: Path | str = DEFAULT_PATH,
        mode: int = DEFAULT_MODE,
        retry: RetryConfig | None = None,
        clear: bool = False,
    ) -> None:
        """Initialize the cache, creating the root directory if required.

        Args:
            ld_api: The linked data API client.
            json_api: The JSON API client.
            path: The cache root directory.
            mode: Permissions of directories created in the cache.
            retry: Retry policy for API reads.
            clear: If True, delete any existing cache content.

        Raises:
            ValueError: If no path is given.
            WriteError: If the root directory cannot be created.
        """
        if not path:
            msg = "Cache directory expected"
            raise ValueError(msg)
        self.ld_api = ld_api
        self.json_api = json_api
        self._path = Path(path)
        self._mode = mode
        self._tenancy_host = ld_api.tenancy_host
        self._log = logger.bind(component=COMPONENT_CACHE, cache_path=str(self._path))
        self._metrics = CacheMetrics.get_instance()

        config = (retry or default_retry_config()).with_handlers(
            {HandlerKey.RETRY: self._on_api_retry}
        )
        self._retry = RetryEngine(config)

        try:
            make_dirs(self._path, self._mode)
        except OSError as e:
            msg = f"Cache directory {self._path} could not be created: {e}"
            raise WriteError(msg, path=str(self._path)) from e

        if clear:
            self.clear()

    @property
    def path(self) -> Path:
        """Get the cache root directory."""
        return self._path

    @property
    def mode(self) -> int:
        """Get the permissions of directories created in the cache."""
        return self._mode

    @property
    def tenancy_host(self) -> str | None:
        """Get the canonical tenancy host name."""
        return self._tenancy_host

    @property
    def retry_config(self) -> RetryConfig:
        """Get the retry policy for API reads."""
        return self._retry.config

    def canonical_url(self, url: str | None) -> str | None:
        """Return the canonical form of a URL.

        Returns:
            The canonical URL, or None if the URL is outside the tenancy.
        """
        return self.ld_api.canonical_url(url)

    def cache_entry(self, url: str | None) -> CacheEntry:
        """Return the cache entry for a URL.

        Raises:
            NotCacheable: If the URL is not cacheable.
        """
        return CacheEntry(self.canonical_url(url), self)

    def include(self, url: str | None = None, entry: CacheEntry | None = None) -> bool:
        """Check if an object is in the cache."""
        try:
            entry = entry or self.cache_entry(url)
        except NotCacheable:
            return False
        return entry.exists()

    def is_empty(self) -> bool:
        """Check if the cache holds no content."""
        return not self._path.is_dir() or not any(self._path.iterdir())

    def read(
        self,
        url: str | None = None,
        entry: CacheEntry | None = None,
        json: bool = False,
        use_cache: bool = True,
    ) -> Any:
        """Read an object from the cache or the API.

        Args:
            url: The URL of the object.
            entry: The cache entry, used in preference to url.
            json: If True, read the JSON API representation, otherwise the
                linked data representation.
            use_cache: If True, try the cache before the API.

        Returns:
            The parsed JSON data, or None if the object is not cacheable or
            the API returned no content.

        Raises:
            ReadError: If the cache or the API cannot be read.
            WriteError: If data read from the API cannot be cached.
        """
        try:
            entry = entry or self.cache_entry(url)
        except NotCacheable as e:
            self._log.debug("cache_not_cacheable", url=url, reason=str(e))
            return None

        kind = FileKind.JSON_API if json else FileKind.LINKED_DATA
        if use_cache:
            try:
                data = entry.read_json(kind)
            except CacheMiss:
                self._metrics.record_cache_miss()
            else:
                self._metrics.record_cache_hit()
                self._log.debug("cache_read_hit", url=entry.url, kind=kind.value)
                return data

        return self.write(entry=entry, json=json)

    def write(
        self,
        url: str | None = None,
        data: Any = None,
        entry: CacheEntry | None = None,
        json: bool = False,
    ) -> Any:
        """Write an object to the cache.

        Args:
            url: The URL of the object.
            data: Parsed data, or a raw JSON string or bytes. If None, the
                data is read from the API.
            entry: The cache entry, used in preference to url.
            json: If True, write the JSON API representation, otherwise the
                linked data representation.

        Returns:
            The parsed data written to the cache, or None if the object is
            not cacheable or the API returned no content.

        Raises:
            ReadError: If the API cannot be read or the data is not JSON.
            WriteError: If the cache cannot be written.
        """
        try:
            entry = entry or self.cache_entry(url)
        except NotCacheable as e:
            self._log.debug("cache_not_cacheable", url=url, reason=str(e))
            return None

        kind = FileKind.JSON_API if json else FileKind.LINKED_DATA
        if data is None:
            raw, parsed = self._read_api(entry, kind)
        else:
            raw, parsed = self._serialize(entry, data)
        if raw is None or parsed is None:
            self._log.debug("cache_write_empty", url=entry.url, kind=kind.value)
            return None

        try:
            filename = entry.write(raw, kind)
        except WriteError as e:
            self._metrics.record_write_failure()
            self._log.error("cache_write_failed", url=entry.url, kind=kind.value, error=str(e))
            raise
        self._metrics.record_write()
        self._log.info("cache_write", url=entry.url, kind=kind.value, path=str(filename))
        return parsed

    def remove(
        self,
        url: str | None = None,
        entry: CacheEntry | None = None,
        force: bool = False,
        with_children: bool = False,
    ) -> Any:
        """Remove an object from the cache.

        Args:
            url: The URL of the object.
            entry: The cache entry, used in preference to url.
            force: Remove the object even if it is marked as in-progress.
            with_children: Also remove the object's children.

        Returns:
            The parsed data removed from the cache, or None if the object was
            not cached.

        Raises:
            MarkedError: If the entry is marked and force is False.
            ReadError: If the cached data cannot be read.
            RemoveError: If the files cannot be removed.
        """
        try:
            entry = entry or self.cache_entry(url)
        except NotCacheable:
            return None
        if not entry.exists():
            return None
        try:
            data = entry.read_json()
        except CacheMiss:
            return None
        entry.delete(force=force, with_children=with_children)
        self._metrics.record_removal()
        self._log.info("cache_remove", url=entry.url, force=force, with_children=with_children)
        return data

    def marked_entries(self, *types: str) -> Iterator[CacheEntry]:
        """Iterate over entries marked as in-progress.

        Args:
            *types: Object types to search, e.g. "lists". All object types
                are searched if none are given.

        Yields:
            The marked cache entries. Markers which do not correspond to a
            cacheable URL are ignored.
        """
        for object_type in types or (ALL_TYPES,):
            for marker in sorted(self._path.glob(f"{object_type}/{MARKER_PREFIX}[!.]*")):
                if not marker.is_file():
                    continue
                try:
                    yield self.cache_entry(self._marker_url(marker))
                except NotCacheable:
                    self._log.debug("cache_marker_ignored", path=str(marker))

    def clear(self) -> None:
        """Delete all content of the cache but not the root directory.

        Raises:
            RemoveError: If the content cannot be deleted.
        """
        try:
            clear_directory(self._path)
        except OSError as e:
            msg = f"Cache clear failed: {e}"
            raise RemoveError(msg, path=str(self._path)) from e
        self._log.info("cache_cleared")

    def delete(self) -> None:
        """Delete the cache including the root directory.

        Raises:
            RemoveError: If the cache cannot be deleted.
        """
        try:
            remove_tree(self._path)
        except OSError as e:
            msg = f"Cache delete failed: {e}"
            raise RemoveError(msg, path=str(self._path)) from e
        self._log.info("cache_deleted")

    def _marker_url(self, marker: Path) -> str:
        """Convert a marker filename to the URL of its object."""
        relative = strip_filename_prefix(marker.relative_to(self._path), MARKER_PREFIX)
        return self.ld_api.api_url(relative.as_posix())

    def _read_api(
        self, entry: CacheEntry, kind: FileKind
    ) -> tuple[bytes | None, Any]:
        """Read an object from the API with retries.

        Raises:
            ReadError: If the API read fails after retries.
        """
        if kind == FileKind.JSON_API:
            if self.json_api is None or entry.json_api_url is None:
                self._log.debug("cache_json_api_unavailable", url=entry.url)
                return None, None
            json_api = self.json_api
            path = entry.json_api_url

            def operation() -> APIResponse:
                return json_api.fetch(path, **entry.json_api_params)

        else:

            def operation() -> APIResponse:
                return self.ld_api.fetch(entry.url)

        try:
            response = self._retry.execute(operation)
        except APIError as e:
            self._metrics.record_api_failure()
            self._log.error(
                "cache_api_read_failed",
                url=entry.url,
                kind=kind.value,
                api_url=e.url,
                status_code=e.status_code,
                error=str(e),
            )
            msg = f"{entry.url} read failed from {kind.value} API: {e}"
            raise ReadError(msg, url=entry.url) from e
        except SOCKET_EXCEPTIONS as e:
            self._metrics.record_api_failure()
            self._log.error("cache_api_read_failed", url=entry.url, kind=kind.value, error=str(e))
            msg = f"{entry.url} read failed from {kind.value} API: {e}"
            raise ReadError(msg, url=entry.url) from e

        self._metrics.record_api_read()
        self._log.debug("cache_api_read", url=entry.url, kind=kind.value, api_url=response.url)
        if response.is_empty:
            return None, None
        return response.body_bytes, response.data

    def _serialize(self, entry: CacheEntry, data: Any) -> tuple[bytes, Any]:
        """Return the raw and parsed forms of data to be cached.

        Raises:
            ReadError: If raw data is not valid JSON.
        """
        if isinstance(data, str | bytes):
            raw = data.encode("utf-8") if isinstance(data, str) else data
            try:
                return raw, json.loads(raw)
            except ValueError as e:
                msg = f"{entry.url} data is not valid JSON: {e}"
                raise ReadError(msg, url=entry.url) from e
        return json.dumps(data).encode("utf-8"), data

    def _on_api_retry(
        self, exc: Exception, tries_remaining: int | None, _retriable: bool
    ) -> HandlerResult | None:
        self._metrics.record_api_retry()
        self._log.info(
            "cache_api_retry",
            error=str(exc),
            error_type=type(exc).__name__,
            tries_remaining=tries_remaining,
        )
        return None
