"""Builds the cache by crawling the Aspire object graph.

Linked data API responses have the structure::

    {url: {primary object}, related-url1: {related object 1}, ...}

where the related objects are included inline with the primary object. The
primary and related objects are written to the cache before any references
within them are followed, which avoids repeated API calls for the related
objects.

Starting from a list, the crawl follows every reference except those
leading to other lists: paths such as list.usedBy -> module.usesList would
otherwise pull unrelated lists into the cache.
"""

import time
from collections.abc import Iterable
from typing import Any

import structlog

from aspire_cache.caching.cache import Cache
from aspire_cache.caching.constants import COMPONENT_BUILDER, TYPE_LISTS
from aspire_cache.caching.entry import CacheEntry
from aspire_cache.caching.errors import CacheError, NotCacheable
from aspire_cache.caching.metrics import CacheMetrics
from aspire_cache.linked_data.document import LinkedDataDocument


logger = structlog.get_logger()

# Reasons for skipping a URL
SKIP_HANDLED = "handled"
SKIP_CACHED = "cached"
SKIP_MARKED = "marked"
SKIP_UNRELATED_LIST = "unrelated_list"
SKIP_NOT_CACHEABLE = "not_cacheable"


def duration(seconds: float) -> str:
    """Format an elapsed time as HH:MM:SS."""
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class Builder:
    """Caches Aspire API objects and the objects they reference."""

    def __init__(self, cache: Cache) -> None:
        """Initialize the builder.

        Args:
            cache: The cache to populate.
        """
        self.cache = cache
        self._log = logger.bind(component=COMPONENT_BUILDER)
        self._metrics = CacheMetrics.get_instance()

    def build(self, urls: Iterable[str], clear: bool = False) -> int:
        """Cache a set of lists and everything they reference.

        Entries already in the cache are trusted and not reloaded, so
        repeating a build only fetches what is missing.

        Args:
            urls: URLs of the lists to cache.
            clear: If True, clear the cache before building.

        Returns:
            The number of lists processed.
        """
        if clear:
            self.cache.clear()
        count = 0
        start = time.monotonic()
        for url in urls:
            self.write_list(url, reload=False)
            count += 1
        elapsed = time.monotonic() - start
        self._log.info(
            "build_complete",
            lists=count,
            duration=duration(elapsed),
            metrics=self._metrics.to_dict(),
        )
        return count

    def resume(self, urls: Iterable[str]) -> int:
        """Resume an interrupted build.

        Lists left marked as in-progress by a previous run cannot be
        trusted, so they are removed with their children and reloaded before
        the build continues.

        Args:
            urls: URLs of the lists to cache.

        Returns:
            The number of lists processed by the build.
        """
        # Collect first, reloading changes the markers being iterated
        for entry in list(self.cache.marked_entries(TYPE_LISTS)):
            self._log.info("resume_reload", url=entry.url)
            self.cache.remove(entry=entry, force=True, with_children=True)
            # remove() is a no-op when only the marker exists
            entry.unmark()
            self.write_list(entry.url, reload=True)
        return self.build(urls)

    def write_list(
        self,
        url: str,
        data: Any = None,
        reload: bool = True,
        handled: set[str] | None = None,
    ) -> None:
        """Cache a list, ignoring references to other lists.

        Args:
            url: The URL of the list.
            data: Parsed linked data of the list. If None, the data is read
                from the API.
            reload: If True, reload the list from the API, otherwise do
                nothing if the list is already cached.
            handled: URLs already handled by the current operation.

        Raises:
            ValueError: If the URL is not a list.
        """
        try:
            entry = self.cache.cache_entry(url)
        except NotCacheable as e:
            self._skip(url, SKIP_NOT_CACHEABLE, error=str(e))
            return
        if not entry.is_list():
            msg = f"List expected: {url}"
            raise ValueError(msg)
        self.write(entry.url, data=data, parent_list=entry, reload=reload, handled=handled)

    def write(
        self,
        url: str,
        data: Any = None,
        parent_list: CacheEntry | None = None,
        reload: bool = True,
        handled: set[str] | None = None,
    ) -> None:
        """Cache an object and, recursively, the objects it references.

        Use write(url) to build a cache for the first time, and
        write(url, reload=True) to reload parts of the cache.

        Args:
            url: The URL of the object.
            data: Parsed linked data of the object. If None, the data is read
                from the API.
            parent_list: The list at the root of the crawl. Lists which are
                not this list or its children are not cached.
            reload: If True, reload the object from the API, otherwise do
                nothing if the object is already cached.
            handled: URLs already handled by the current operation.

        Raises:
            Exception: Any exception other than a CacheError. The markers of
                the objects being written are left in place.
        """
        if handled is None:
            handled = set()
        try:
            entry = self.cache.cache_entry(url)
        except NotCacheable as e:
            self._skip(url, SKIP_NOT_CACHEABLE, error=str(e))
            return

        reason = self._skip_reason(entry, parent_list, reload, handled)
        if reason is not None:
            self._skip(entry.url, reason)
            return

        try:
            self._write_entry(entry, data, parent_list, reload, handled)
        except CacheError as e:
            self._metrics.record_error(type(e).__name__)
            self._log.error(
                "builder_write_failed",
                url=entry.url,
                error=str(e),
                error_type=type(e).__name__,
            )
        except Exception as e:
            self._metrics.record_error(type(e).__name__)
            self._log.critical(
                "builder_write_aborted",
                url=entry.url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    def is_unrelated_list(
        self, entry: CacheEntry, parent_list: CacheEntry | None
    ) -> bool:
        """Check if an entry is a list unrelated to the crawl's root list.

        Args:
            entry: The cache entry.
            parent_list: The list at the root of the crawl.

        Returns:
            True if the entry is a list or list child which is neither the
            parent list nor one of its children. False if there is no parent
            list.
        """
        if parent_list is None or not entry.is_list(strict=False):
            return False
        return not entry.is_child_of(parent_list)

    def _skip_reason(
        self,
        entry: CacheEntry,
        parent_list: CacheEntry | None,
        reload: bool,
        handled: set[str],
    ) -> str | None:
        if entry.url in handled:
            return SKIP_HANDLED
        if not reload and entry.exists():
            return SKIP_CACHED
        # Another writer owns a marked entry
        if reload and entry.is_marked():
            return SKIP_MARKED
        if self.is_unrelated_list(entry, parent_list):
            return SKIP_UNRELATED_LIST
        return None

    def _skip(self, url: str | None, reason: str, **kwargs: Any) -> None:
        self._metrics.record_skip(reason)
        self._log.debug("builder_skip", url=url, reason=reason, **kwargs)

    def _write_entry(
        self,
        entry: CacheEntry,
        data: Any,
        parent_list: CacheEntry | None,
        reload: bool,
        handled: set[str],
    ) -> None:
        """Write an object and its JSON API data, then follow its references."""
        handled.add(entry.url)
        use_cache = not reload
        if data is not None:
            linked_data = self.cache.write(entry=entry, data=data)
        else:
            linked_data = self.cache.read(entry=entry, use_cache=use_cache)
        if entry.has_json_api:
            self._write_json_api(entry, use_cache)
        self._metrics.record_object_written()

        if not linked_data or not entry.references_followable:
            return

        document = LinkedDataDocument(linked_data)
        with entry.mark(keep_on_error=True):
            self._write_related(entry, document, parent_list, reload, handled)
            self._write_references(document, parent_list, reload, handled)

    def _write_json_api(self, entry: CacheEntry, use_cache: bool) -> None:
        """Write the JSON API representation of an object.

        A failure is logged and the crawl goes on to the object's
        references.
        """
        try:
            self.cache.read(entry=entry, json=True, use_cache=use_cache)
        except CacheError as e:
            self._metrics.record_error(type(e).__name__)
            self._log.error(
                "builder_json_api_failed",
                url=entry.url,
                error=str(e),
                error_type=type(e).__name__,
            )

    def _write_related(
        self,
        entry: CacheEntry,
        document: LinkedDataDocument,
        parent_list: CacheEntry | None,
        reload: bool,
        handled: set[str],
    ) -> None:
        """Write the objects included inline with the primary object."""
        for subject in document:
            # The primary object has already been written
            if self.cache.canonical_url(subject) == entry.url:
                continue
            self.write(
                subject,
                data=document.raw_subject(subject),
                parent_list=parent_list,
                reload=reload,
                handled=handled,
            )

    def _write_references(
        self,
        document: LinkedDataDocument,
        parent_list: CacheEntry | None,
        reload: bool,
        handled: set[str],
    ) -> None:
        """Write the objects referenced by URI from the document."""
        for uri in document.references():
            self.write(uri, parent_list=parent_list, reload=reload, handled=handled)
