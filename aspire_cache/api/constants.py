"""Constants for the Aspire API clients."""

# Domain names
TALIS_DOMAIN = "talis.com"
ASPIRE_DOMAIN = f"rl.{TALIS_DOMAIN}"
ASPIRE_AUTH_DOMAIN = f"users.{TALIS_DOMAIN}"
TENANCY_DOMAIN = "myreadinglists.org"

# The default URL scheme for tenancy hosts
DEFAULT_SCHEME = "http"

# JSON API roots
JSON_API_ROOT = f"https://{ASPIRE_DOMAIN}"
JSON_API_ROOT_AUTH = f"https://{ASPIRE_AUTH_DOMAIN}/1/oauth/tokens"
JSON_API_VERSION = 2

# Linked data format extension
LINKED_DATA_FORMAT = ".json"

# HTTP status codes
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_SERVER_ERROR_MIN = 500
HTTP_STATUS_SERVER_ERROR_MAX = 600

# Rate limit response headers
RATE_LIMIT_HEADER = "x-ratelimit-limit"
RATE_REMAINING_HEADER = "x-ratelimit-remaining"
RATE_RESET_HEADER = "x-ratelimit-reset"

# Log component name
COMPONENT_API = "api"
