"""Data models for the retry engine."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar


T = TypeVar("T")


class HandlerKey(str, Enum):
    """Special handler keys.

    - DEFAULT: runs first for every failure, whatever its kind
    - RETRY: runs after the delay, immediately before a retry
    """

    DEFAULT = "default"
    RETRY = "retry"


@dataclass(frozen=True)
class Continue:
    """Handler result: carry on with normal retry processing."""


@dataclass(frozen=True)
class Retry:
    """Handler result: treat the failure as retriable if tries remain."""


@dataclass(frozen=True)
class ReturnValue(Generic[T]):
    """Handler result: stop retrying and return a value to the caller."""

    value: T


HandlerResult = Continue | Retry | ReturnValue[Any]

# A handler accepts the exception, the number of tries remaining (None if
# unbounded) and whether the failure is currently considered retriable.
# Returning None is equivalent to returning Continue().
Handler = Callable[[Exception, int | None, bool], HandlerResult | None]

TriesPredicate = Callable[[Exception], bool]


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for the retry engine.

    Attributes:
        max_tries: Maximum number of attempts, or a predicate which accepts
            the exception and returns True if another attempt is allowed.
        delay: Seconds to wait before retrying. Positive values are exact,
            negative values give a uniform random wait up to abs(delay).
        retriable: Exception kinds which may be retried, in order.
        handlers: Handlers keyed by exception kind or HandlerKey.
    """

    max_tries: int | TriesPredicate = 3
    delay: float = 0.0
    retriable: tuple[type[Exception], ...] = ()
    handlers: Mapping[type[Exception] | HandlerKey, Handler] = field(
        default_factory=dict
    )

    def __post_init__(self) -> None:
        """Validate the configuration."""
        if isinstance(self.max_tries, bool) or (
            isinstance(self.max_tries, int) and self.max_tries < 0
        ):
            msg = f"max_tries must be a non-negative int or a predicate: {self.max_tries!r}"
            raise ValueError(msg)
        if not isinstance(self.max_tries, int) and not callable(self.max_tries):
            msg = f"max_tries must be a non-negative int or a predicate: {self.max_tries!r}"
            raise ValueError(msg)
        for kind in self.retriable:
            if not (isinstance(kind, type) and issubclass(kind, Exception)):
                msg = f"retriable kinds must be exception classes: {kind!r}"
                raise ValueError(msg)

    def with_handlers(
        self, handlers: Mapping[type[Exception] | HandlerKey, Handler]
    ) -> "RetryConfig":
        """Return a copy of the configuration with additional handlers."""
        return RetryConfig(
            max_tries=self.max_tries,
            delay=self.delay,
            retriable=self.retriable,
            handlers={**self.handlers, **handlers},
        )
