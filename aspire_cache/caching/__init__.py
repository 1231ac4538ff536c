"""File-based cache of Aspire API objects and the builder which fills it.

Provides:
- Cache entries mapping object URLs to files, with in-progress markers
- A read-through cache over the linked data and JSON APIs
- A builder which crawls the object graph from a set of lists
"""

from aspire_cache.caching.builder import Builder, duration
from aspire_cache.caching.cache import (
    RETRIABLE_API_ERRORS,
    Cache,
    JsonClient,
    LinkedDataClient,
    default_retry_config,
)
from aspire_cache.caching.entry import CacheEntry, FileKind, ScopedLock
from aspire_cache.caching.errors import (
    CacheError,
    CacheMiss,
    MarkedError,
    MarkError,
    NotCacheable,
    ReadError,
    RemoveError,
    UnmarkError,
    WriteError,
)
from aspire_cache.caching.metrics import CacheMetrics


__all__ = [
    # Builder
    "Builder",
    "duration",
    # Cache
    "RETRIABLE_API_ERRORS",
    "Cache",
    "JsonClient",
    "LinkedDataClient",
    "default_retry_config",
    # Entries
    "CacheEntry",
    "FileKind",
    "ScopedLock",
    # Errors
    "CacheError",
    "CacheMiss",
    "MarkError",
    "MarkedError",
    "NotCacheable",
    "ReadError",
    "RemoveError",
    "UnmarkError",
    "WriteError",
    # Metrics
    "CacheMetrics",
]
