"""Client for the Aspire linked data API."""

import posixpath
from urllib.parse import SplitResult, urlsplit, urlunsplit

import httpx

from aspire_cache.api.base import BaseAPIClient
from aspire_cache.api.constants import (
    DEFAULT_SCHEME,
    LINKED_DATA_FORMAT,
    TENANCY_DOMAIN,
)
from aspire_cache.api.models import APIConfig, APIResponse


def _split(url: str) -> SplitResult | None:
    """Split a URL, treating scheme-less values as host names."""
    if not url:
        return None
    if "//" not in url:
        url = f"{DEFAULT_SCHEME}://{url}"
    try:
        parts = urlsplit(url)
        # Accessing port validates the netloc
        _ = parts.port
    except ValueError:
        return None
    return parts


def _rewrite_format(path: str, fmt: str) -> str:
    """Replace the format extension of a URL path.

    Args:
        path: The URL path.
        fmt: The new extension including the dot, or "" to remove it.

    Returns:
        The path with the new extension.
    """
    root, ext = posixpath.splitext(path)
    if ext:
        path = root
    if path and fmt and not path.endswith(fmt):
        path = f"{path}{fmt}"
    return path


class LinkedDataAPI(BaseAPIClient):
    """Wrapper for the Aspire linked data API.

    Knows the tenancy's canonical host and its aliases, so that any
    tenancy URL can be rewritten to the single canonical form used as the
    cache key.
    """

    def __init__(  # noqa: PLR0913
        self,
        tenancy_code: str,
        linked_data_root: str | None = None,
        tenancy_root: str | None = None,
        tenancy_host_aliases: list[str] | str | None = None,
        config: APIConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            tenancy_code: The Aspire tenancy code.
            linked_data_root: Root URL of linked data URIs, usually
                http://<tenancy-code>.myreadinglists.org.
            tenancy_root: Canonical root URL of the tenancy.
            tenancy_host_aliases: Non-canonical host names of the tenancy.
                None defaults to the canonical myreadinglists.org host.
            config: Client configuration.
            transport: Optional httpx transport, used in tests.
        """
        super().__init__(tenancy_code, config=config, transport=transport)
        self.linked_data_root = self._root(linked_data_root)
        self.tenancy_root = self._root(tenancy_root)
        self.tenancy_host_aliases = self._aliases(tenancy_host_aliases)

    @property
    def canonical_host(self) -> str:
        """Get the myreadinglists.org host name of the tenancy."""
        return f"{self.tenancy_code}.{TENANCY_DOMAIN}"

    @property
    def tenancy_host(self) -> str:
        """Get the canonical tenancy host name."""
        return self.tenancy_root.netloc.lower()

    @property
    def linked_data_host(self) -> str:
        """Get the linked data URI host name."""
        return self.linked_data_root.netloc.lower()

    def _root(self, url: str | None) -> SplitResult:
        root = _split(url or self.canonical_host)
        if root is None or not root.netloc:
            msg = f"Invalid root URL: {url!r}"
            raise ValueError(msg)
        return root

    def _aliases(self, aliases: list[str] | str | None) -> list[str]:
        if aliases is None:
            return [self.canonical_host]
        if isinstance(aliases, str):
            aliases = [aliases]
        hosts = []
        for alias in aliases:
            parts = _split(alias.strip())
            if parts is not None and parts.netloc:
                hosts.append(parts.netloc.lower())
        return hosts

    def api_url(self, path: str) -> str:
        """Return a full tenancy URL from a partial object path.

        Args:
            path: A partial path such as lists/1234, or a full URL.

        Returns:
            The full URL.
        """
        if "//" in path:
            return path
        root = urlunsplit(self.tenancy_root).rstrip("/")
        return f"{root}/{path.lstrip('/')}"

    def valid_host(self, host: str | None) -> bool:
        """Check if a host name belongs to the tenancy."""
        if not host:
            return False
        host = host.lower()
        return host == self.tenancy_host or host in self.tenancy_host_aliases

    def valid_url(self, url: str | None) -> bool:
        """Check if a URL belongs to the tenancy."""
        parts = _split(url) if url else None
        return parts is not None and self.valid_host(parts.netloc)

    def canonical_url(self, url: str | None) -> str | None:
        """Convert a tenancy URL to its canonical form.

        The host is replaced by the canonical tenancy host and the format
        extension is set to .json.

        Args:
            url: A tenancy URL using the canonical host or an alias.

        Returns:
            The canonical URL, or None if the URL is not a tenancy URL.
        """
        return self._rewrite_url(url, self.tenancy_root, LINKED_DATA_FORMAT)

    def linked_data_url(self, url: str | None) -> str | None:
        """Convert a tenancy URL to the form used within linked data.

        Returns:
            The URL using the linked data host and no format extension, or
            None if the URL is not a tenancy URL.
        """
        return self._rewrite_url(url, self.linked_data_root, "")

    def _rewrite_url(
        self, url: str | None, root: SplitResult, fmt: str
    ) -> str | None:
        parts = _split(url) if url else None
        if parts is None or not self.valid_host(parts.netloc):
            return None
        path = _rewrite_format(parts.path, fmt)
        return urlunsplit((root.scheme, root.netloc, path, "", ""))

    def fetch(self, url: str) -> APIResponse:
        """Fetch an object from the linked data API.

        Args:
            url: The partial or full tenancy URL of the object.

        Returns:
            The raw and parsed JSON response.

        Raises:
            APIError: If the call fails.
        """
        url = self.api_url(url)
        if not url.endswith(LINKED_DATA_FORMAT):
            url = f"{url}{LINKED_DATA_FORMAT}"
        response = self._send("GET", url)
        return self._to_api_response(url, response)
