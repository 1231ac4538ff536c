"""Linked data URL model and typed document model."""

from aspire_cache.linked_data.document import (
    RDF_SEQUENCE_PREFIX,
    LinkedDataDocument,
    LinkedDataValue,
)
from aspire_cache.linked_data.url import (
    InvalidURLError,
    ParsedURL,
    id_from_url,
    is_child,
    is_list,
    is_parent,
    is_strict_child,
    parse_url,
    same_object,
)


__all__ = [
    # URL model
    "InvalidURLError",
    "ParsedURL",
    "id_from_url",
    "is_child",
    "is_list",
    "is_parent",
    "is_strict_child",
    "parse_url",
    "same_object",
    # Document model
    "LinkedDataDocument",
    "LinkedDataValue",
    "RDF_SEQUENCE_PREFIX",
]
