"""Cache entries: the on-disk identity of a cacheable object.

Each entry maps a canonical object URL to files under the cache root:

    lists/1234.json         linked data API content
    lists/1234-json.json    JSON API content (top-level lists only)
    lists/.1234.json        in-progress marker, present only during a write
    lists/1234/             children of the object, e.g. lists/1234/items/...
"""

import fcntl
import json
import os
from collections.abc import Callable
from enum import Enum
from pathlib import Path, PurePosixPath
from types import TracebackType
from typing import Any, Protocol

import structlog

from aspire_cache.caching.constants import (
    CACHE_FILE_EXT,
    COMPONENT_CACHE_ENTRY,
    IMPORTANCE_PREFIX,
    JSON_API_SUFFIX,
    LIST_JSON_API_PARAMS,
    MARKER_PREFIX,
    TYPE_CATALOG,
    TYPE_CONFIG,
    TYPE_EVENTS,
    TYPE_USERS,
)
from aspire_cache.caching.errors import (
    CacheMiss,
    MarkedError,
    MarkError,
    NotCacheable,
    ReadError,
    RemoveError,
    UnmarkError,
    WriteError,
)
from aspire_cache.caching.fs import (
    add_filename_prefix,
    add_filename_suffix,
    make_dirs,
    remove_empty_parents,
    remove_file,
    remove_tree,
    strip_ext,
)
from aspire_cache.linked_data.url import (
    InvalidURLError,
    ParsedURL,
    is_child,
    is_list,
    is_list_or_child,
    parse_url,
)


logger = structlog.get_logger()


class CacheLocation(Protocol):
    """The cache settings an entry needs to locate its files."""

    @property
    def path(self) -> Path:
        """Root directory of the cache."""
        ...

    @property
    def mode(self) -> int:
        """Permissions of directories created in the cache."""
        ...

    @property
    def tenancy_host(self) -> str | None:
        """Canonical tenancy host name."""
        ...


class FileKind(str, Enum):
    """The representations of an object held in the cache."""

    LINKED_DATA = "linked_data"
    JSON_API = "json_api"


# Rules for determining whether an object URL is cacheable. Each rule
# accepts the parsed URL and the cache location and returns True if the
# object is cacheable. All rules must pass.
CacheableRule = Callable[[ParsedURL, CacheLocation], bool]

CACHEABLE_RULES: list[tuple[str, CacheableRule]] = [
    # The host must match the canonical tenancy host
    ("foreign_host", lambda u, c: u.tenancy_host == (c.tenancy_host or "").lower()),
    # The URL must identify an object
    ("no_object", lambda u, _c: bool(u.object_type and u.object_id)),
    # Catalog objects are not cacheable
    ("catalog", lambda u, _c: u.object_type != TYPE_CATALOG),
    # Users are not cacheable but their child objects (e.g. notes) are
    ("user", lambda u, _c: u.object_type != TYPE_USERS or u.has_child),
    # Importance config values are not cacheable
    (
        "importance",
        lambda u, _c: u.object_type != TYPE_CONFIG
        or not (u.object_id or "").startswith(IMPORTANCE_PREFIX),
    ),
]


class ScopedLock:
    """An in-progress marker held on a cache entry.

    The marker file is created when the lock is acquired by
    CacheEntry.mark() and deleted by release(). Used as a context manager,
    the marker is released on every exit path, unless keep_on_error is set
    and an exception escapes the block: the marker then remains as evidence
    of the interrupted write.
    """

    def __init__(self, entry: "CacheEntry", keep_on_error: bool = False) -> None:
        """Initialize the lock.

        Args:
            entry: The marked cache entry.
            keep_on_error: Keep the marker if the block raises.
        """
        self.entry = entry
        self.keep_on_error = keep_on_error
        self.released = False

    def release(self) -> None:
        """Delete the marker if it has not already been released."""
        if not self.released:
            self.entry.unmark()
            self.released = True

    def __enter__(self) -> "CacheEntry":
        """Return the marked entry."""
        return self.entry

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Release the marker."""
        if exc_type is not None and self.keep_on_error:
            return
        self.release()


class CacheEntry:
    """An object in the cache, identified by its canonical URL.

    Construction fails with NotCacheable unless the URL is a tenancy object
    URL of a cacheable type. Instances are cheap and created on demand; the
    files they describe persist across runs.
    """

    def __init__(self, url: str | None, cache: CacheLocation) -> None:
        """Initialize the entry.

        Args:
            url: The canonical URL of the object.
            cache: The cache holding the entry.

        Raises:
            NotCacheable: If the URL is not cacheable.
        """
        self.cache = cache
        self.parsed_url = self._cacheable_url(url)
        self.url: str = self.parsed_url.url
        self.file = self._file()
        self.json_file: Path | None = None
        self.json_api_url: str | None = None
        self.json_api_params: dict[str, int] = {}
        if is_list(self.parsed_url):
            self.json_file = add_filename_suffix(self.file, JSON_API_SUFFIX)
            self.json_api_url = f"lists/{self.parsed_url.object_id}"
            self.json_api_params = dict(LIST_JSON_API_PARAMS)
        self.marker_file = add_filename_prefix(self.file, MARKER_PREFIX)
        self._log = logger.bind(component=COMPONENT_CACHE_ENTRY, url=self.url)

    def __repr__(self) -> str:
        return f"CacheEntry({self.url!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CacheEntry):
            return NotImplemented
        return self.url == other.url

    def __hash__(self) -> int:
        return hash(self.url)

    @classmethod
    def cacheable(cls, url: str | None, cache: CacheLocation) -> bool:
        """Check if a URL is cacheable without raising."""
        try:
            cls(url, cache)
        except NotCacheable:
            return False
        return True

    def _cacheable_url(self, url: str | None) -> ParsedURL:
        if url is None:
            msg = "No URL (not a tenancy URL)"
            raise NotCacheable(msg)
        try:
            parsed = parse_url(url)
        except InvalidURLError as e:
            msg = f"{url} is not a valid object URL"
            raise NotCacheable(msg, url=str(url)) from e
        for reason, rule in CACHEABLE_RULES:
            if not rule(parsed, self.cache):
                msg = f"{url} is not cacheable ({reason})"
                raise NotCacheable(msg, url=url)
        return parsed

    def _file(self) -> Path:
        """Return the linked data filename, mirroring the URL path."""
        relative = PurePosixPath(self.parsed_url.path.lstrip("/"))
        if ".." in relative.parts or not relative.parts:
            msg = f"{self.parsed_url.url} has an invalid path"
            raise NotCacheable(msg, url=self.parsed_url.url)
        if relative.suffix != CACHE_FILE_EXT:
            relative = relative.with_name(f"{relative.name}{CACHE_FILE_EXT}")
        return Path(self.cache.path).joinpath(*relative.parts)

    @property
    def object_type(self) -> str | None:
        """Get the type of the primary object."""
        return self.parsed_url.object_type

    @property
    def has_json_api(self) -> bool:
        """Check if the object has a JSON API representation."""
        return self.json_file is not None

    @property
    def references_followable(self) -> bool:
        """Check if the object's references can be followed.

        Events are plain JSON rather than linked data.
        """
        return (
            self.parsed_url.object_type != TYPE_EVENTS
            and self.parsed_url.child_type != TYPE_EVENTS
        )

    def is_list(self, strict: bool = True) -> bool:
        """Check if the entry is a list.

        Args:
            strict: If True, only top-level lists match, otherwise list
                child objects also match.
        """
        if strict:
            return is_list(self.parsed_url)
        return is_list_or_child(self.parsed_url)

    def is_child_of(
        self, parent: "CacheEntry | ParsedURL | str", strict: bool = False
    ) -> bool:
        """Check if the entry is a child of another object.

        Args:
            parent: The candidate parent entry or URL.
            strict: If False, the entry may also be the parent itself.
        """
        if isinstance(parent, CacheEntry):
            parent = parent.parsed_url
        return is_child(self.parsed_url, parent, strict=strict)

    def path(self, kind: FileKind = FileKind.LINKED_DATA) -> Path | None:
        """Return the cache filename for a representation of the object."""
        return self.json_file if kind == FileKind.JSON_API else self.file

    def exists(self, kind: FileKind = FileKind.LINKED_DATA) -> bool:
        """Check if a representation of the object is in the cache."""
        filename = self.path(kind)
        return filename is not None and filename.exists()

    def is_marked(self) -> bool:
        """Check if the entry is marked as in-progress."""
        return self.marker_file.exists()

    def mark(self, force: bool = False, keep_on_error: bool = False) -> ScopedLock:
        """Mark the entry as in-progress.

        The marker file is created atomically, so of two processes marking
        the same entry only one succeeds.

        Args:
            force: Mark the entry even if it is already marked.
            keep_on_error: See ScopedLock.

        Returns:
            The lock, which must be released when the work is done.

        Raises:
            MarkedError: If the entry is already marked and force is False.
            MarkError: If the marker cannot be created.
        """
        flags = os.O_CREAT | os.O_WRONLY
        if not force:
            flags |= os.O_EXCL
        try:
            make_dirs(self.marker_file.parent, self.cache.mode)
            fd = os.open(self.marker_file, flags, 0o640)
            os.close(fd)
        except FileExistsError as e:
            msg = f"{self.url} already marked [{self.marker_file}]"
            raise MarkedError(msg, url=self.url, path=str(self.marker_file)) from e
        except OSError as e:
            msg = f"{self.url} mark failed [{self.marker_file}]: {e}"
            raise MarkError(msg, url=self.url, path=str(self.marker_file)) from e
        self._log.debug("cache_entry_marked", force=force)
        return ScopedLock(self, keep_on_error=keep_on_error)

    def unmark(self) -> None:
        """Remove the in-progress marker, if present.

        Raises:
            UnmarkError: If the marker exists but cannot be removed.
        """
        try:
            remove_file(self.marker_file)
        except OSError as e:
            msg = f"{self.url} unmark failed [{self.marker_file}]: {e}"
            raise UnmarkError(msg, url=self.url, path=str(self.marker_file)) from e
        self._log.debug("cache_entry_unmarked")

    def read(self, kind: FileKind = FileKind.LINKED_DATA) -> bytes:
        """Read a representation of the object from the cache.

        Raises:
            CacheMiss: If the object is not cached.
            ReadError: If the file cannot be read.
        """
        filename = self.path(kind)
        if filename is None:
            msg = f"{self.url} has no {kind.value} representation"
            raise CacheMiss(msg, url=self.url)
        try:
            with filename.open("rb") as f:
                fcntl.flock(f, fcntl.LOCK_SH)
                return f.read()
        except FileNotFoundError as e:
            msg = f"{self.url} cache miss [{filename}]"
            raise CacheMiss(msg, url=self.url, path=str(filename)) from e
        except OSError as e:
            msg = f"{self.url} cache read failed [{filename}]: {e}"
            raise ReadError(msg, url=self.url, path=str(filename)) from e

    def read_json(self, kind: FileKind = FileKind.LINKED_DATA) -> Any:
        """Read and parse a representation of the object from the cache.

        Raises:
            CacheMiss: If the object is not cached.
            ReadError: If the file cannot be read or parsed.
        """
        data = self.read(kind)
        try:
            return json.loads(data)
        except ValueError as e:
            filename = self.path(kind)
            msg = f"{self.url} cache read failed [{filename}]: {e}"
            raise ReadError(msg, url=self.url, path=str(filename)) from e

    def write(
        self, data: bytes | str, kind: FileKind = FileKind.LINKED_DATA
    ) -> Path:
        """Write a representation of the object to the cache.

        The file is held under an exclusive lock while it is rewritten.

        Args:
            data: The JSON content.
            kind: The representation to write.

        Returns:
            The filename written.

        Raises:
            WriteError: If the file cannot be written.
        """
        filename = self.path(kind)
        if filename is None:
            msg = f"{self.url} has no {kind.value} representation"
            raise WriteError(msg, url=self.url)
        if isinstance(data, str):
            data = data.encode("utf-8")
        try:
            make_dirs(filename.parent, self.cache.mode)
            fd = os.open(filename, os.O_WRONLY | os.O_CREAT, 0o640)
            with os.fdopen(fd, "wb") as f:
                fcntl.flock(f, fcntl.LOCK_EX)
                f.truncate(0)
                f.write(data)
                f.flush()
        except OSError as e:
            msg = f"{self.url} cache write failed [{filename}]: {e}"
            raise WriteError(msg, url=self.url, path=str(filename)) from e
        return filename

    def delete(self, force: bool = False, with_children: bool = False) -> None:
        """Delete the object from the cache.

        Deletes the linked data file, the JSON API file and the marker, and
        optionally the directory holding the object's children, then removes
        any directories left empty up to the cache root.

        Args:
            force: Delete even if the entry is marked as in-progress.
            with_children: Also delete the object's children.

        Raises:
            MarkedError: If the entry is marked and force is False.
            RemoveError: If the files cannot be deleted.
        """
        # Hold the marker while deleting so that no writer starts meanwhile
        try:
            with self.mark(force=force):
                remove_file(self.file)
                remove_file(self.json_file)
                if with_children:
                    remove_tree(strip_ext(self.file))
                remove_file(self.marker_file)
                remove_empty_parents(self.file, Path(self.cache.path))
        except OSError as e:
            msg = f"{self.url} remove failed [{self.file}]: {e}"
            raise RemoveError(msg, url=self.url, path=str(self.file)) from e
        self._log.debug("cache_entry_deleted", force=force, with_children=with_children)
