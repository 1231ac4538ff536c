"""Structured logging configuration for cache builds."""

import logging
import sys
import uuid
from pathlib import Path
from typing import TextIO

import structlog


LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

# Log file stream of the current configuration, closed on reconfiguration
_tee_stream: "TeeStream | None" = None


class TeeStream:
    """Write log output to a stream and append it to a log file."""

    def __init__(self, stream: TextIO, log_file: Path) -> None:
        """Initialize the stream.

        Args:
            stream: The primary output stream.
            log_file: File to which output is also appended.
        """
        self.stream = stream
        self.log_file = log_file
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.log_file.open("a", encoding="utf-8")

    def write(self, message: str) -> int:
        """Write a message to both destinations."""
        self._file.write(message)
        return self.stream.write(message)

    def flush(self) -> None:
        """Flush both destinations."""
        self._file.flush()
        self.stream.flush()

    def close(self) -> None:
        """Close the log file. The primary stream is left open."""
        self._file.close()

    @property
    def closed(self) -> bool:
        """Check if the log file has been closed."""
        return self._file.closed


def parse_level(level: str | int) -> int:
    """Convert a level name such as "debug" to a logging level.

    Raises:
        ValueError: If the level name is not recognised.
    """
    if isinstance(level, int):
        return level
    try:
        return LOG_LEVELS[level.strip().lower()]
    except KeyError:
        msg = f"Unknown log level: {level!r}"
        raise ValueError(msg) from None


def configure_logging(
    level: str | int = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
    log_file: Path | None = None,
) -> None:
    """Configure structured logging for the application.

    Events are rendered as sorted-key JSON lines, or in a human-readable
    console format, with the log level, an ISO timestamp and any bound
    context variables.

    Args:
        level: Logging level or level name (default: INFO).
        output: Output stream (default: stderr).
        json_format: Whether to use JSON format (default: True).
        log_file: If given, output is also appended to this file.
    """
    global _tee_stream  # noqa: PLW0603

    level = parse_level(level)
    if _tee_stream is not None:
        _tee_stream.close()
        _tee_stream = None
    stream: TextIO | TeeStream = output
    if log_file is not None:
        stream = _tee_stream = TeeStream(output, log_file)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        colors = log_file is None and output.isatty()
        processors.append(structlog.dev.ConsoleRenderer(colors=colors))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),  # type: ignore[arg-type]
        cache_logger_on_first_use=False,
    )

    # httpx logs each request through the standard library
    logging.basicConfig(format="%(message)s", stream=output, level=max(level, logging.WARNING))


def new_run_id() -> str:
    """Return a short unique identifier for a build run."""
    return uuid.uuid4().hex[:12]


def bind_run_context(run_id: str, **context: str | None) -> None:
    """Bind run context to all subsequent log messages.

    Args:
        run_id: Unique run identifier.
        **context: Further values to bind, e.g. the tenancy code.
    """
    values = {k: v for k, v in context.items() if v is not None}
    structlog.contextvars.bind_contextvars(run_id=run_id, **values)


def clear_run_context() -> None:
    """Clear run context from log messages."""
    structlog.contextvars.clear_contextvars()
