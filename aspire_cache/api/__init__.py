"""Clients for the Aspire linked data and JSON APIs."""

from aspire_cache.api.base import BaseAPIClient
from aspire_cache.api.errors import (
    APIConnectionError,
    APIError,
    APIServerError,
    APITimeout,
)
from aspire_cache.api.json_api import JsonAPI
from aspire_cache.api.linked_data import LinkedDataAPI
from aspire_cache.api.models import APIConfig, APIResponse


__all__ = [
    # Clients
    "BaseAPIClient",
    "JsonAPI",
    "LinkedDataAPI",
    # Models
    "APIConfig",
    "APIResponse",
    # Errors
    "APIConnectionError",
    "APIError",
    "APIServerError",
    "APITimeout",
]
