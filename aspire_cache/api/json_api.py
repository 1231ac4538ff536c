"""Client for the Aspire JSON API."""

import base64
from datetime import UTC, datetime

import httpx

from aspire_cache.api.base import BaseAPIClient
from aspire_cache.api.constants import (
    HTTP_STATUS_UNAUTHORIZED,
    JSON_API_ROOT,
    JSON_API_ROOT_AUTH,
    JSON_API_VERSION,
    RATE_LIMIT_HEADER,
    RATE_REMAINING_HEADER,
    RATE_RESET_HEADER,
)
from aspire_cache.api.errors import APIError
from aspire_cache.api.models import APIConfig, APIResponse


class JsonAPI(BaseAPIClient):
    """Wrapper for the Aspire JSON API.

    Calls are authenticated with an OAuth client-credentials token which is
    cached between calls. If a call is rejected with 401 the token is
    refreshed and the call repeated once.
    """

    def __init__(  # noqa: PLR0913
        self,
        api_client_id: str | None,
        api_secret: str | None,
        tenancy_code: str | None,
        api_root: str = JSON_API_ROOT,
        api_root_auth: str = JSON_API_ROOT_AUTH,
        api_version: int = JSON_API_VERSION,
        config: APIConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_client_id: The API client ID.
            api_secret: The secret associated with the client ID.
            tenancy_code: The Aspire short tenancy code.
            api_root: Base URL of the JSON APIs.
            api_root_auth: URL of the OAuth token endpoint.
            api_version: Version of the JSON APIs.
            config: Client configuration.
            transport: Optional httpx transport, used in tests.
        """
        super().__init__(tenancy_code, config=config, transport=transport)
        self._api_client_id = api_client_id
        self._api_secret = api_secret
        self._api_token: str | None = None
        self.api_root = api_root.rstrip("/")
        self.api_root_auth = api_root_auth
        self.api_version = api_version
        self.rate_limit: int | None = None
        self.rate_remaining: int | None = None
        self.rate_reset: datetime | None = None

    def api_url(self, path: str) -> str:
        """Return a full JSON API URL.

        Full URLs are returned unchanged, partial paths are expanded with the
        API root, version and tenancy code.
        """
        if "//" in path:
            return path
        return f"{self.api_root}/{self.api_version}/{self.tenancy_code}/{path.lstrip('/')}"

    def fetch(
        self,
        path: str,
        headers: dict[str, str] | None = None,
        **params: str | int,
    ) -> APIResponse:
        """Call a JSON API endpoint.

        Args:
            path: The endpoint path, e.g. lists/1234.
            headers: Additional HTTP headers.
            **params: Query string parameters.

        Returns:
            The raw and parsed JSON response.

        Raises:
            APIError: If the call fails.
        """
        url = self.api_url(path)
        refresh = False
        while True:
            token = self._token(refresh=refresh)
            request_headers = {**(headers or {}), "Authorization": f"Bearer {token}"}
            response = self._send("GET", url, headers=request_headers, params=params)
            self._update_rate_limit(response.headers)
            if response.status_code != HTTP_STATUS_UNAUTHORIZED or refresh:
                return self._to_api_response(url, response)
            # The token may have expired, try once more with a new token
            self._log.debug("api_token_expired", url=url)
            refresh = True

    def _token(self, refresh: bool = False) -> str:
        """Return an OAuth token, retrieving a new one if required.

        Raises:
            APIError: If no token could be retrieved.
        """
        if self._api_token is not None and not refresh:
            return self._api_token
        self._api_token = None

        credentials = f"{self._api_client_id}:{self._api_secret}".encode()
        headers = {
            "Authorization": f"Basic {base64.b64encode(credentials).decode()}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        response = self._send(
            "POST",
            self.api_root_auth,
            headers=headers,
            data={"grant_type": "client_credentials"},
        )
        data = self._to_api_response(self.api_root_auth, response).data
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            msg = "No access token in authentication response"
            raise APIError(msg, url=self.api_root_auth)
        self._api_token = str(token)
        self._log.debug("api_token_retrieved")
        return self._api_token

    def _update_rate_limit(self, headers: httpx.Headers) -> None:
        self.rate_limit = _int_header(headers, RATE_LIMIT_HEADER, self.rate_limit)
        self.rate_remaining = _int_header(
            headers, RATE_REMAINING_HEADER, self.rate_remaining
        )
        reset = _int_header(headers, RATE_RESET_HEADER, None)
        if reset is not None:
            self.rate_reset = datetime.fromtimestamp(reset, tz=UTC)


def _int_header(headers: httpx.Headers, name: str, default: int | None) -> int | None:
    value = headers.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default
