"""Command line interface for the cache builder."""
