"""Metrics collection for the file cache."""

from collections import Counter
from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class CacheMetrics:
    """Metrics for cache and builder operations.

    Attributes:
        cache_hits_total: Reads satisfied from the cache.
        cache_misses_total: Reads not found in the cache.
        api_reads_total: Successful API reads.
        api_failures_total: API reads which failed after retries.
        api_retries_total: API read retries.
        writes_total: Files written to the cache.
        write_failures_total: Failed cache writes.
        removals_total: Entries removed from the cache.
        objects_written_total: Objects written by the builder.
        skips_by_reason: Builder skips keyed by reason.
        errors_by_class: Builder errors keyed by exception class name.
    """

    cache_hits_total: int = 0
    cache_misses_total: int = 0
    api_reads_total: int = 0
    api_failures_total: int = 0
    api_retries_total: int = 0
    writes_total: int = 0
    write_failures_total: int = 0
    removals_total: int = 0
    objects_written_total: int = 0
    skips_by_reason: Counter[str] = field(default_factory=Counter)
    errors_by_class: Counter[str] = field(default_factory=Counter)

    _instance: ClassVar["CacheMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "CacheMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_cache_hit(self) -> None:
        """Record a read satisfied from the cache."""
        self.cache_hits_total += 1

    def record_cache_miss(self) -> None:
        """Record a read not found in the cache."""
        self.cache_misses_total += 1

    def record_api_read(self) -> None:
        """Record a successful API read."""
        self.api_reads_total += 1

    def record_api_failure(self) -> None:
        """Record an API read which failed after retries."""
        self.api_failures_total += 1

    def record_api_retry(self) -> None:
        """Record an API read retry."""
        self.api_retries_total += 1

    def record_write(self) -> None:
        """Record a file written to the cache."""
        self.writes_total += 1

    def record_write_failure(self) -> None:
        """Record a failed cache write."""
        self.write_failures_total += 1

    def record_removal(self) -> None:
        """Record an entry removed from the cache."""
        self.removals_total += 1

    def record_object_written(self) -> None:
        """Record an object written by the builder."""
        self.objects_written_total += 1

    def record_skip(self, reason: str) -> None:
        """Record a builder skip."""
        self.skips_by_reason[reason] += 1

    def record_error(self, error_class: str) -> None:
        """Record a builder error."""
        self.errors_by_class[error_class] += 1

    def to_dict(self) -> dict[str, int | dict[str, int]]:
        """Convert metrics to dictionary for logging."""
        return {
            "cache_hits_total": self.cache_hits_total,
            "cache_misses_total": self.cache_misses_total,
            "api_reads_total": self.api_reads_total,
            "api_failures_total": self.api_failures_total,
            "api_retries_total": self.api_retries_total,
            "writes_total": self.writes_total,
            "write_failures_total": self.write_failures_total,
            "removals_total": self.removals_total,
            "objects_written_total": self.objects_written_total,
            "skips_by_reason": dict(self.skips_by_reason),
            "errors_by_class": dict(self.errors_by_class),
        }
