"""Unit tests for application settings."""

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from pydantic import ValidationError

from aspire_cache.settings import AppSettings, get_settings


ENV_VARS = [
    "ASPIRE_TENANT",
    "ASPIRE_API_CLIENT_ID",
    "ASPIRE_API_SECRET",
    "ASPIRE_LINKED_DATA_ROOT",
    "ASPIRE_TENANCY_ROOT",
    "ASPIRE_TENANCY_HOST_ALIASES",
    "ASPIRE_CACHE_PATH",
    "ASPIRE_CACHE_MODE",
    "ASPIRE_LIST_REPORT",
    "ASPIRE_LOG",
    "ASPIRE_API_TIMEOUT",
    "ASPIRE_API_RETRIES",
    "ASPIRE_API_RETRY_DELAY",
    "SSL_CA_FILE",
    "SSL_CA_PATH",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[Path]:
    """Remove settings from the environment and run in an empty directory."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.chdir(tmpdir)
        yield Path(tmpdir)


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self) -> None:
        """Test defaults when nothing is configured."""
        settings = AppSettings()

        assert settings.tenant is None
        assert settings.cache_path is None
        assert settings.cache_mode == 0o700
        assert settings.tenancy_host_aliases is None
        assert settings.api_timeout == 30.0
        assert settings.api_retries == 3
        assert settings.api_retry_delay == -5.0

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test values are read from ASPIRE_* variables."""
        monkeypatch.setenv("ASPIRE_TENANT", "abc")
        monkeypatch.setenv("ASPIRE_CACHE_PATH", "/var/cache/aspire")
        monkeypatch.setenv("ASPIRE_CACHE_MODE", "750")
        monkeypatch.setenv("ASPIRE_API_RETRIES", "5")

        settings = AppSettings()

        assert settings.tenant == "abc"
        assert settings.cache_path == Path("/var/cache/aspire")
        assert settings.cache_mode == 0o750
        assert settings.api_retries == 5

    def test_empty_cache_mode_uses_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test an empty mode falls back to the default."""
        monkeypatch.setenv("ASPIRE_CACHE_MODE", "")

        assert AppSettings().cache_mode == 0o700

    def test_invalid_cache_mode(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test non-octal modes are rejected."""
        monkeypatch.setenv("ASPIRE_CACHE_MODE", "rwx")

        with pytest.raises(ValidationError):
            AppSettings()

    def test_host_aliases_are_split(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test aliases are semicolon-separated."""
        monkeypatch.setenv(
            "ASPIRE_TENANCY_HOST_ALIASES", "lists.example.ac.uk; abc.myreadinglists.org;"
        )

        assert AppSettings().tenancy_host_aliases == [
            "lists.example.ac.uk",
            "abc.myreadinglists.org",
        ]

    def test_api_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the API client configuration is derived from settings."""
        monkeypatch.setenv("ASPIRE_API_TIMEOUT", "12.5")
        monkeypatch.setenv("SSL_CA_FILE", "/etc/ssl/ca.pem")

        config = AppSettings().api_config()

        assert config.timeout_seconds == 12.5
        assert config.ssl_ca_file == "/etc/ssl/ca.pem"
        assert config.ssl_ca_path is None


class TestGetSettings:
    """Tests for get_settings."""

    def test_reads_env_file(self, clean_env: Path) -> None:
        """Test an explicit environment file is read."""
        env_file = clean_env / "aspire.env"
        env_file.write_text("ASPIRE_TENANT=xyz\nASPIRE_LIST_REPORT=/data/lists.csv\n")

        settings = get_settings(env_file)

        assert settings.tenant == "xyz"
        assert settings.list_report == Path("/data/lists.csv")

    def test_reads_dotenv_by_default(self, clean_env: Path) -> None:
        """Test .env in the working directory is read."""
        (clean_env / ".env").write_text("ASPIRE_TENANT=dotenv\n")

        assert get_settings().tenant == "dotenv"
