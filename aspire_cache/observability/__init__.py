"""Observability module for structured logging."""

from aspire_cache.observability.logging import (
    bind_run_context,
    clear_run_context,
    configure_logging,
    new_run_id,
    parse_level,
)


__all__ = [
    "bind_run_context",
    "clear_run_context",
    "configure_logging",
    "new_run_id",
    "parse_level",
]
