"""Constants for the file cache."""

# Default cache directory permissions (owner and group only)
DEFAULT_MODE = 0o750

# Default cache root directory
DEFAULT_PATH = "/tmp/aspire/cache"  # noqa: S108

# Cache file naming
CACHE_FILE_EXT = ".json"
JSON_API_SUFFIX = "-json"
MARKER_PREFIX = "."

# Object types
TYPE_CATALOG = "catalog"
TYPE_CONFIG = "config"
TYPE_EVENTS = "events"
TYPE_LISTS = "lists"
TYPE_USERS = "users"

# Config objects with ids starting with this prefix are not cacheable
IMPORTANCE_PREFIX = "importance"

# JSON API query parameters for list objects
LIST_JSON_API_PARAMS: dict[str, int] = {
    "bookjacket": 1,
    "editions": 1,
    "draft": 1,
    "history": 1,
}

# Column of the list report holding the list URL
LIST_LINK_COLUMN = "List Link"

# Log component names
COMPONENT_CACHE = "cache"
COMPONENT_CACHE_ENTRY = "cache_entry"
COMPONENT_BUILDER = "builder"

# Default retry policy for API reads: up to 3 attempts, waiting a random
# interval of up to 5 seconds between attempts
DEFAULT_API_TRIES = 3
DEFAULT_API_RETRY_DELAY = -5.0

# Glob pattern matching every object type directory
ALL_TYPES = "**"
