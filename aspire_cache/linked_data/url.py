"""Parsing and comparison of Aspire linked data object URLs.

An object URL has the general form::

    scheme://host/type/id[.format][/child_type[/child_id][.format]]

for example ``http://abc.myreadinglists.org/lists/1234ABCD.json`` or
``http://abc.myreadinglists.org/users/5678/notes/9012``. All comparisons
operate on the object type and id only; host and format are ignored.
"""

import re
from dataclasses import dataclass
from urllib.parse import urlparse


LIST_TYPE = "lists"

VALID_SCHEMES = ("http", "https")

# Path components of an object URL
OBJECT_PATH_PATTERN = re.compile(
    r"^/(?P<object_type>[^/]+)"
    r"(?:/(?P<object_id>[^/.]+)(?:\.(?P<format>[^/]*))?"
    r"(?:/(?P<child_type>[^/.]+)"
    r"(?:/(?P<child_id>[^/.]+))?"
    r"(?:\.(?P<child_format>[^/]*))?)?)?"
)


class InvalidURLError(ValueError):
    """Raised when a URL has no valid scheme or host."""

    def __init__(self, url: object) -> None:
        """Initialize the error.

        Args:
            url: The malformed URL.
        """
        self.url = url
        super().__init__(f"Invalid object URL: {url!r}")


@dataclass(frozen=True)
class ParsedURL:
    """Typed components of an object URL.

    Attributes:
        url: The original URL string.
        scheme: URL scheme (http or https).
        tenancy_host: Host name of the URL.
        path: Path component of the URL.
        object_type: Type of the primary object (lists, resources etc.).
        object_id: ID of the primary object.
        format: Format extension of the primary object (json etc.).
        child_type: Type of the child object, if any.
        child_id: ID of the child object, if any.
        child_format: Format extension of the child object, if any.
    """

    url: str
    scheme: str
    tenancy_host: str
    path: str
    object_type: str | None = None
    object_id: str | None = None
    format: str | None = None
    child_type: str | None = None
    child_id: str | None = None
    child_format: str | None = None

    @property
    def has_child(self) -> bool:
        """Check if the URL refers to a child of the primary object."""
        return bool(self.child_type)


def parse_url(url: str | ParsedURL) -> ParsedURL:
    """Parse an object URL into its components.

    Args:
        url: The URL to parse. Already-parsed URLs are returned unchanged.

    Returns:
        The parsed URL. Components missing from the path are None.

    Raises:
        InvalidURLError: If the URL has no valid scheme or host.
    """
    if isinstance(url, ParsedURL):
        return url
    if not isinstance(url, str) or not url:
        raise InvalidURLError(url)

    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidURLError(url) from e

    if parsed.scheme.lower() not in VALID_SCHEMES or not parsed.netloc:
        raise InvalidURLError(url)

    components: dict[str, str | None] = {}
    match = OBJECT_PATH_PATTERN.match(parsed.path)
    if match:
        components = {k: v or None for k, v in match.groupdict().items()}

    return ParsedURL(
        url=url,
        scheme=parsed.scheme.lower(),
        tenancy_host=parsed.netloc.lower(),
        path=parsed.path,
        **components,
    )


def is_list(url: str | ParsedURL) -> bool:
    """Check if a URL refers to a top-level list.

    Args:
        url: The URL to check.

    Returns:
        True if the object type is lists and there is no child type.
    """
    parsed = parse_url(url)
    return parsed.object_type == LIST_TYPE and not parsed.has_child


def is_list_or_child(url: str | ParsedURL) -> bool:
    """Check if a URL refers to a list or to a child object of a list."""
    return parse_url(url).object_type == LIST_TYPE


def same_object(url1: str | ParsedURL, url2: str | ParsedURL) -> bool:
    """Check if two URLs share the same primary object.

    Args:
        url1: The first URL.
        url2: The second URL.

    Returns:
        True if the object type and id of both URLs match.
    """
    u1 = parse_url(url1)
    u2 = parse_url(url2)
    return u1.object_type == u2.object_type and u1.object_id == u2.object_id


def is_parent(
    parent: str | ParsedURL,
    child: str | ParsedURL,
    strict: bool = False,
) -> bool:
    """Check if the first URL is the parent of the second URL.

    Args:
        parent: The candidate parent URL.
        child: The candidate child URL.
        strict: If True, the parent must have no child type and the child
            must have one. Otherwise the URLs may also refer to the same
            object.

    Returns:
        True if the parent relationship holds.
    """
    p = parse_url(parent)
    c = parse_url(child)
    if not same_object(p, c):
        return False
    if not strict:
        return True
    return not p.has_child and c.has_child


def is_child(
    child: str | ParsedURL,
    parent: str | ParsedURL,
    strict: bool = False,
) -> bool:
    """Check if the first URL is a child of the second URL.

    See is_parent for the meaning of strict.
    """
    return is_parent(parent, child, strict=strict)


def id_from_url(url: str | ParsedURL) -> str | None:
    """Return the primary object id of a URL."""
    return parse_url(url).object_id


def is_strict_child(child: str | ParsedURL, parent: str | ParsedURL) -> bool:
    """Check if the first URL is a child object of the second URL.

    The URLs must share the primary object, the child must have a child
    type and the parent must not.
    """
    return is_parent(parent, child, strict=True)
