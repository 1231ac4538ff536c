"""Enumeration of Aspire report exports."""

from aspire_cache.enumerator.report import (
    ReportEnumerator,
    ReportRow,
    convert_date,
    list_filters,
    list_urls,
)


__all__ = [
    "ReportEnumerator",
    "ReportRow",
    "convert_date",
    "list_filters",
    "list_urls",
]
