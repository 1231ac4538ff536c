"""Base class for the Aspire API clients."""

import json
import ssl

import httpx
import structlog

from aspire_cache.api.constants import (
    COMPONENT_API,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
)
from aspire_cache.api.errors import (
    APIConnectionError,
    APIError,
    APIServerError,
    APITimeout,
)
from aspire_cache.api.models import APIConfig, APIResponse
from aspire_cache.api.redact import redact_headers, redact_url_credentials


logger = structlog.get_logger()


class BaseAPIClient:
    """Common HTTP handling for the Aspire APIs.

    Maps transport failures and HTTP error statuses to the APIError
    hierarchy so that callers can decide which failures to retry:
    - Timeouts raise APITimeout
    - Connection and other transport failures raise APIConnectionError
    - 429 and 5xx responses raise APIServerError
    - Other non-2xx responses and invalid JSON raise APIError
    """

    def __init__(
        self,
        tenancy_code: str | None,
        config: APIConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            tenancy_code: The Aspire short tenancy code.
            config: Client configuration.
            transport: Optional httpx transport, used in tests.
        """
        self.tenancy_code = tenancy_code
        self._config = config or APIConfig()
        self._transport = transport
        self._log = logger.bind(component=COMPONENT_API, client=type(self).__name__)

    @property
    def config(self) -> APIConfig:
        """Get the client configuration."""
        return self._config

    def api_url(self, path: str) -> str:
        """Return a full API URL from a full or partial path."""
        return path

    def _verify(self) -> ssl.SSLContext | bool:
        if self._config.ssl_ca_file or self._config.ssl_ca_path:
            return ssl.create_default_context(
                cafile=self._config.ssl_ca_file,
                capath=self._config.ssl_ca_path,
            )
        return True

    def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, str | int] | None = None,
        data: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request and return the raw response.

        Raises:
            APITimeout: If the request timed out.
            APIConnectionError: If the request failed at the transport level.
        """
        request_headers = {
            "User-Agent": self._config.user_agent,
            "Accept": "application/json",
            **(headers or {}),
        }
        self._log.debug(
            "api_request",
            method=method,
            url=redact_url_credentials(url),
            params=params,
            headers=redact_headers(request_headers),
        )
        try:
            with httpx.Client(
                timeout=self._config.timeout,
                verify=self._verify(),
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = client.request(
                    method, url, headers=request_headers, params=params, data=data
                )
                response.read()
        except httpx.TimeoutException as e:
            msg = f"{url} timed out: {e}"
            raise APITimeout(msg, url=url) from e
        except httpx.TransportError as e:
            msg = f"{url} connection failed: {e}"
            raise APIConnectionError(msg, url=url) from e

        self._log.debug(
            "api_response",
            method=method,
            url=redact_url_credentials(url),
            status_code=response.status_code,
            bytes=len(response.content),
        )
        return response

    def _to_api_response(self, url: str, response: httpx.Response) -> APIResponse:
        """Convert an httpx response to an APIResponse.

        Raises:
            APIServerError: On 429 and 5xx responses.
            APIError: On other non-2xx responses or an invalid JSON body.
        """
        status = response.status_code
        if status == HTTP_STATUS_TOO_MANY_REQUESTS or (
            HTTP_STATUS_SERVER_ERROR_MIN <= status < HTTP_STATUS_SERVER_ERROR_MAX
        ):
            msg = f"{url} server error ({status})"
            raise APIServerError(msg, url=url, status_code=status)
        if not HTTP_STATUS_OK_MIN <= status < HTTP_STATUS_OK_MAX:
            msg = f"{url} request failed ({status})"
            raise APIError(msg, url=url, status_code=status)

        body = response.content
        data = None
        if body.strip():
            try:
                data = json.loads(body)
            except ValueError as e:
                msg = f"{url} returned invalid JSON: {e}"
                raise APIError(msg, url=url, status_code=status) from e

        return APIResponse(
            url=str(response.url),
            status_code=status,
            headers=dict(response.headers),
            body_bytes=body,
            data=data,
        )
