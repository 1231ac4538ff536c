"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from aspire_cache.api.models import APIConfig


# Cache directory permissions when ASPIRE_CACHE_MODE is not set
CLI_DEFAULT_CACHE_MODE = 0o700


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    tenant: str | None = Field(default=None, validation_alias="ASPIRE_TENANT")
    api_client_id: str | None = Field(
        default=None, validation_alias="ASPIRE_API_CLIENT_ID"
    )
    api_secret: str | None = Field(default=None, validation_alias="ASPIRE_API_SECRET")
    linked_data_root: str | None = Field(
        default=None, validation_alias="ASPIRE_LINKED_DATA_ROOT"
    )
    tenancy_root: str | None = Field(
        default=None, validation_alias="ASPIRE_TENANCY_ROOT"
    )
    tenancy_host_aliases_raw: str | None = Field(
        default=None, validation_alias="ASPIRE_TENANCY_HOST_ALIASES"
    )
    cache_path: Path | None = Field(default=None, validation_alias="ASPIRE_CACHE_PATH")
    cache_mode: int = Field(
        default=CLI_DEFAULT_CACHE_MODE, validation_alias="ASPIRE_CACHE_MODE"
    )
    list_report: Path | None = Field(
        default=None, validation_alias="ASPIRE_LIST_REPORT"
    )
    log_file: Path | None = Field(default=None, validation_alias="ASPIRE_LOG")
    api_timeout: float = Field(default=30.0, ge=0.0, validation_alias="ASPIRE_API_TIMEOUT")
    api_retries: int = Field(default=3, ge=0, validation_alias="ASPIRE_API_RETRIES")
    api_retry_delay: float = Field(
        default=-5.0, validation_alias="ASPIRE_API_RETRY_DELAY"
    )
    ssl_ca_file: str | None = Field(default=None, validation_alias="SSL_CA_FILE")
    ssl_ca_path: str | None = Field(default=None, validation_alias="SSL_CA_PATH")

    @field_validator("cache_mode", mode="before")
    @classmethod
    def parse_octal_mode(cls, value: object) -> object:
        """Parse the cache mode from an octal string such as "750"."""
        if value is None or value == "":
            return CLI_DEFAULT_CACHE_MODE
        if isinstance(value, str):
            try:
                return int(value, 8)
            except ValueError as e:
                msg = f"ASPIRE_CACHE_MODE must be an octal number: {value!r}"
                raise ValueError(msg) from e
        return value

    @property
    def tenancy_host_aliases(self) -> list[str] | None:
        """Get the tenancy host aliases, None if not configured."""
        if not self.tenancy_host_aliases_raw:
            return None
        return [a.strip() for a in self.tenancy_host_aliases_raw.split(";") if a.strip()]

    def api_config(self) -> APIConfig:
        """Return the API client configuration."""
        return APIConfig(
            timeout_seconds=self.api_timeout,
            ssl_ca_file=self.ssl_ca_file or None,
            ssl_ca_path=self.ssl_ca_path or None,
        )


def get_settings(env_file: Path | str | None = None) -> AppSettings:
    """Get a settings instance.

    Args:
        env_file: Environment file to read instead of .env.
    """
    if env_file is None:
        return AppSettings()
    return AppSettings(_env_file=env_file)  # type: ignore[call-arg]
