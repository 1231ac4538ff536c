"""Incremental file-based cache of Aspire reading list linked data."""

__version__ = "0.1.0"
