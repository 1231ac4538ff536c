"""CLI commands for building the Aspire cache."""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

import click
import structlog
from pydantic import ValidationError

from aspire_cache import __version__
from aspire_cache.api import JsonAPI, LinkedDataAPI
from aspire_cache.caching import (
    Builder,
    Cache,
    CacheError,
    default_retry_config,
)
from aspire_cache.caching.constants import DEFAULT_PATH
from aspire_cache.enumerator import ReportEnumerator, list_filters, list_urls
from aspire_cache.observability.logging import (
    bind_run_context,
    configure_logging,
    new_run_id,
)
from aspire_cache.settings import AppSettings, get_settings


logger = structlog.get_logger()

COMPONENT_CLI = "cli"


@dataclass
class BuildOptions:
    """Options for the build command."""

    env_file: Path | None
    list_uri: str | None
    time_periods: list[str] = field(default_factory=list)
    privacy_control: str | None = None
    status: str | None = None
    clear_cache: bool = False
    resume: bool = False
    json_logs: bool = True
    verbose: bool = False


def _load_settings(env_file: Path | None) -> AppSettings:
    """Load settings, exit on failure."""
    try:
        settings = get_settings(env_file)
    except ValidationError as e:
        click.echo("Configuration is invalid:", err=True)
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            click.echo(f"  - {location}: {error['msg']}", err=True)
        sys.exit(1)
    if not settings.tenant:
        click.echo("Error: ASPIRE_TENANT is not set", err=True)
        sys.exit(1)
    return settings


def _setup_logging_and_context(
    settings: AppSettings, command: str, json_logs: bool, verbose: bool
) -> structlog.typing.FilteringBoundLogger:
    """Set up logging and return a logger bound to the run context."""
    run_id = new_run_id()
    log_level = logging.DEBUG if verbose else logging.INFO
    configure_logging(level=log_level, json_format=json_logs, log_file=settings.log_file)
    bind_run_context(run_id, tenancy=settings.tenant)
    return logger.bind(component=COMPONENT_CLI, command=command)  # type: ignore[no-any-return]


def create_cache(settings: AppSettings) -> Cache:
    """Create the cache and its API clients from settings.

    The JSON API is used only when API credentials are configured.
    """
    tenant = settings.tenant or ""
    api_config = settings.api_config()
    ld_api = LinkedDataAPI(
        tenant,
        linked_data_root=settings.linked_data_root,
        tenancy_root=settings.tenancy_root,
        tenancy_host_aliases=settings.tenancy_host_aliases,
        config=api_config,
    )
    json_api = None
    if settings.api_client_id and settings.api_secret:
        json_api = JsonAPI(
            settings.api_client_id,
            settings.api_secret,
            tenant,
            config=api_config,
        )
    else:
        logger.warning("json_api_disabled", reason="no API credentials")
    return Cache(
        ld_api,
        json_api,
        path=settings.cache_path or DEFAULT_PATH,
        mode=settings.cache_mode,
        retry=default_retry_config(
            max_tries=settings.api_retries, delay=settings.api_retry_delay
        ),
    )


def _execute_build(options: BuildOptions) -> None:
    settings = _load_settings(options.env_file)
    log = _setup_logging_and_context(
        settings, "build", options.json_logs, options.verbose
    )
    builder = Builder(create_cache(settings))

    if options.list_uri:
        log.info("build_list_started", list_uri=options.list_uri)
        click.echo(f"Caching list {options.list_uri}")
        if options.clear_cache:
            builder.cache.clear()
        builder.write_list(options.list_uri)
        click.echo("Finished caching list")
        return

    if not options.privacy_control:
        msg = "--privacy-control is required when --list-uri is not given"
        raise click.UsageError(msg)
    if settings.list_report is None:
        click.echo("Error: ASPIRE_LIST_REPORT is not set", err=True)
        sys.exit(1)

    log.info(
        "build_started",
        list_report=str(settings.list_report),
        time_periods=options.time_periods,
        status=options.status,
        privacy_control=options.privacy_control,
        resume=options.resume,
    )
    click.echo("Caching all lists that match arguments")
    filters = list_filters(options.time_periods, options.status, options.privacy_control)
    urls = list_urls(ReportEnumerator(settings.list_report, filters))
    if options.resume:
        count = builder.resume(urls)
    else:
        count = builder.build(urls, clear=options.clear_cache)
    click.echo(f"Finished caching {count} lists that match arguments")


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Aspire reading list cache builder CLI."""


@cli.command()
@click.option(
    "--env-file",
    "env_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Environment file to load settings from (default: .env).",
)
@click.option(
    "--list-uri",
    "list_uri",
    type=str,
    help="Cache a single list instead of the lists in the list report.",
)
@click.option(
    "--time-period",
    "time_periods",
    multiple=True,
    help="Time period of lists to cache, may be repeated.",
)
@click.option(
    "--privacy-control",
    "privacy_control",
    type=str,
    help="Privacy control of lists to cache (e.g., Public).",
)
@click.option(
    "--status",
    type=str,
    help="Status prefix of lists to cache (e.g., Published).",
)
@click.option(
    "--clear-cache",
    is_flag=True,
    help="Delete the cache contents before building.",
)
@click.option(
    "--resume",
    is_flag=True,
    help="Reload lists left in progress by an interrupted build first.",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Use JSON format for logs (default: true).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
def build(  # noqa: PLR0913
    env_file: Path | None,
    list_uri: str | None,
    time_periods: tuple[str, ...],
    privacy_control: str | None,
    status: str | None,
    clear_cache: bool,
    resume: bool,
    json_logs: bool,
    verbose: bool,
) -> None:
    """Build the cache from the Aspire APIs.

    Caches the list given by --list-uri, or every list in the list report
    (ASPIRE_LIST_REPORT) matching the filter options. Lists already cached
    are not reloaded unless --clear-cache is given.
    """
    options = BuildOptions(
        env_file=env_file,
        list_uri=list_uri,
        time_periods=list(time_periods),
        privacy_control=privacy_control,
        status=status,
        clear_cache=clear_cache,
        resume=resume,
        json_logs=json_logs,
        verbose=verbose,
    )
    try:
        _execute_build(options)
    except (CacheError, OSError, ValueError) as e:
        logger.error("build_failed", error=str(e), error_type=type(e).__name__)
        click.echo(f"Build failed: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option(
    "--env-file",
    "env_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Environment file to load settings from (default: .env).",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Use JSON format for logs (default: true).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
def clear(env_file: Path | None, json_logs: bool, verbose: bool) -> None:
    """Delete the cache contents, keeping the cache directory."""
    settings = _load_settings(env_file)
    log = _setup_logging_and_context(settings, "clear", json_logs, verbose)
    cache = create_cache(settings)
    try:
        cache.clear()
    except CacheError as e:
        log.error("clear_failed", error=str(e))
        click.echo(f"Clear failed: {e}", err=True)
        sys.exit(1)
    click.echo(f"Cleared cache {cache.path}")


def main() -> None:
    """Entry point for the aspire-cache command."""
    cli()
