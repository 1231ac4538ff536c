"""Data models for the Aspire API clients."""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field


class APIConfig(BaseModel):
    """Configuration shared by the Aspire API clients."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_seconds: Annotated[float, Field(ge=0.0, le=600.0)] = Field(
        default=30.0, description="Request timeout, 0 for no timeout"
    )
    ssl_ca_file: str | None = Field(
        default=None, description="Certificate authority bundle file"
    )
    ssl_ca_path: str | None = Field(
        default=None, description="Certificate authority directory"
    )
    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        "aspire-cache/0.1"
    )

    @property
    def timeout(self) -> float | None:
        """Get the timeout for httpx, None if disabled."""
        return self.timeout_seconds or None


class APIResponse(BaseModel):
    """Response from an Aspire API call.

    Carries both the raw body, which is written to the cache unchanged, and
    the parsed JSON data.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: Annotated[str, Field(min_length=1)]
    status_code: int = Field(ge=100, le=599)
    headers: dict[str, str] = Field(default_factory=dict)
    body_bytes: bytes = b""
    data: Any = None

    @property
    def is_empty(self) -> bool:
        """Check if the response carried no data."""
        return not self.body_bytes or self.data is None
