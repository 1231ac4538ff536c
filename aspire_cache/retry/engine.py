"""Execution of operations with bounded retries.

The engine knows nothing about caching or HTTP: it classifies failures as
retriable or fatal, runs the configured handlers, waits and re-invokes the
operation until it succeeds, a handler returns a value or the failure is
fatal.
"""

import random
import time
from collections.abc import Callable
from typing import TypeVar

import structlog

from aspire_cache.retry.constants import COMPONENT_RETRY
from aspire_cache.retry.models import (
    Handler,
    HandlerKey,
    Retry,
    RetryConfig,
    ReturnValue,
)


logger = structlog.get_logger()

T = TypeVar("T")


def execute(
    operation: Callable[[], T],
    config: RetryConfig,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Execute an operation until it succeeds or fails fatally.

    On each failure the remaining tries are decremented (or the tries
    predicate is evaluated), the failure is classified, and the handlers run
    in order: the HandlerKey.DEFAULT handler, then the handler registered
    for the most specific matching exception kind. A handler returning
    ReturnValue ends processing and its value is returned. Fatal failures
    re-raise the original exception. Retriable failures wait for the
    configured delay, run the HandlerKey.RETRY handler and re-invoke the
    operation.

    Args:
        operation: Zero-argument callable to execute.
        config: Retry configuration.
        sleep: Function used to wait between attempts.

    Returns:
        The return value of the operation, or a value supplied by a handler.

    Raises:
        Exception: The original exception when the failure is fatal, or any
            exception raised by a handler.
    """
    remaining = config.max_tries if isinstance(config.max_tries, int) else None
    attempt = 0
    log = logger.bind(component=COMPONENT_RETRY)

    while True:
        attempt += 1
        try:
            return operation()
        except Exception as exc:
            if remaining is not None:
                remaining -= 1
            tries_remain = _tries_remain(exc, config, remaining)
            retriable = tries_remain and isinstance(exc, config.retriable)

            for handler in _exception_handlers(exc, config):
                result = handler(exc, remaining, retriable)
                if isinstance(result, ReturnValue):
                    log.debug(
                        "retry_stopped_by_handler",
                        attempt=attempt,
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    return result.value
                if isinstance(result, Retry):
                    retriable = tries_remain

            if not retriable:
                log.debug(
                    "retry_failed",
                    attempt=attempt,
                    tries_remaining=remaining,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise

            wait_seconds = wait(config.delay, sleep)
            log.debug(
                "retry_attempt",
                attempt=attempt + 1,
                tries_remaining=remaining,
                delay_seconds=round(wait_seconds, 3),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            retry_handler = config.handlers.get(HandlerKey.RETRY)
            if retry_handler is not None:
                retry_handler(exc, remaining, retriable)


def wait(delay: float, sleep: Callable[[float], None] = time.sleep) -> float:
    """Wait before retrying.

    Args:
        delay: Positive values wait exactly that many seconds, negative
            values wait a random time up to abs(delay) seconds.
        sleep: Function used to wait.

    Returns:
        The number of seconds waited.
    """
    if delay > 0:
        seconds = delay
    elif delay < 0:
        seconds = random.uniform(0, -delay)  # noqa: S311
    else:
        return 0.0
    sleep(seconds)
    return seconds


def _tries_remain(
    exc: Exception, config: RetryConfig, remaining: int | None
) -> bool:
    if remaining is not None:
        return remaining > 0
    predicate = config.max_tries
    return bool(callable(predicate) and predicate(exc))


def _exception_handlers(exc: Exception, config: RetryConfig) -> list[Handler]:
    """Return the handlers to run for an exception, in order."""
    handlers: list[Handler] = []
    default = config.handlers.get(HandlerKey.DEFAULT)
    if default is not None:
        handlers.append(default)
    for kind in type(exc).__mro__:
        handler = config.handlers.get(kind)
        if handler is not None:
            handlers.append(handler)
            break
    return handlers


class RetryEngine:
    """Executes operations using a default retry configuration."""

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Default retry configuration.
            sleep: Function used to wait between attempts.
        """
        self._config = config or RetryConfig()
        self._sleep = sleep

    @property
    def config(self) -> RetryConfig:
        """Get the default retry configuration."""
        return self._config

    def execute(
        self,
        operation: Callable[[], T],
        config: RetryConfig | None = None,
    ) -> T:
        """Execute an operation, see execute()."""
        return execute(operation, config or self._config, sleep=self._sleep)
