"""Unit tests for the retry engine."""

from collections.abc import Callable

import pytest

from aspire_cache.retry import (
    Continue,
    HandlerKey,
    Retry,
    RetryConfig,
    RetryEngine,
    ReturnValue,
    execute,
    wait,
)


class TransientError(Exception):
    """A retriable failure."""


class SpecificTransientError(TransientError):
    """A more specific retriable failure."""


class FatalError(Exception):
    """A non-retriable failure."""


class FlakyOperation:
    """Fails a number of times, then returns a value."""

    def __init__(self, failures: int, error: Exception | None = None) -> None:
        self.failures = failures
        self.error = error or TransientError("transient")
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


class SleepRecorder:
    """Records requested sleeps instead of sleeping."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep() -> SleepRecorder:
    """Create a sleep recorder."""
    return SleepRecorder()


def run(
    operation: Callable[[], str], config: RetryConfig, sleep: SleepRecorder
) -> str:
    """Execute an operation with a recorded sleep."""
    return execute(operation, config, sleep=sleep)


class TestRetryConfig:
    """Tests for RetryConfig validation."""

    def test_default_values(self) -> None:
        """Test default retry configuration."""
        config = RetryConfig()

        assert config.max_tries == 3
        assert config.delay == 0.0
        assert config.retriable == ()
        assert dict(config.handlers) == {}

    @pytest.mark.parametrize("max_tries", [-1, True, "3"])
    def test_invalid_max_tries(self, max_tries: object) -> None:
        """Test invalid bounds are rejected."""
        with pytest.raises(ValueError, match="max_tries"):
            RetryConfig(max_tries=max_tries)  # type: ignore[arg-type]

    def test_invalid_retriable_kind(self) -> None:
        """Test retriable kinds must be exception classes."""
        with pytest.raises(ValueError, match="exception classes"):
            RetryConfig(retriable=("oops",))  # type: ignore[arg-type]

    def test_with_handlers_merges(self) -> None:
        """Test handlers are added to a copy of the configuration."""
        first = RetryConfig(handlers={HandlerKey.DEFAULT: lambda *_: None})
        second = first.with_handlers({HandlerKey.RETRY: lambda *_: None})

        assert set(first.handlers) == {HandlerKey.DEFAULT}
        assert set(second.handlers) == {HandlerKey.DEFAULT, HandlerKey.RETRY}


class TestExecute:
    """Tests for the retry loop."""

    def test_success_returns_value(self, sleep: SleepRecorder) -> None:
        """Test a successful operation runs once."""
        operation = FlakyOperation(failures=0)

        assert run(operation, RetryConfig(), sleep) == "ok"
        assert operation.calls == 1

    def test_retries_until_success(self, sleep: SleepRecorder) -> None:
        """Test retriable failures are retried."""
        operation = FlakyOperation(failures=2)
        config = RetryConfig(max_tries=3, retriable=(TransientError,))

        assert run(operation, config, sleep) == "ok"
        assert operation.calls == 3

    def test_exactly_max_tries_attempts(self, sleep: SleepRecorder) -> None:
        """Test an always-failing operation is attempted max_tries times."""
        operation = FlakyOperation(failures=100)
        config = RetryConfig(max_tries=3, retriable=(TransientError,))

        with pytest.raises(TransientError):
            run(operation, config, sleep)

        assert operation.calls == 3

    def test_zero_tries_first_failure_is_fatal(self, sleep: SleepRecorder) -> None:
        """Test max_tries=0 never retries."""
        operation = FlakyOperation(failures=1)
        config = RetryConfig(max_tries=0, retriable=(TransientError,))

        with pytest.raises(TransientError):
            run(operation, config, sleep)

        assert operation.calls == 1

    def test_non_retriable_is_fatal(self, sleep: SleepRecorder) -> None:
        """Test exceptions outside the retriable kinds propagate at once."""
        operation = FlakyOperation(failures=1, error=FatalError("fatal"))
        config = RetryConfig(max_tries=5, retriable=(TransientError,))

        with pytest.raises(FatalError):
            run(operation, config, sleep)

        assert operation.calls == 1
        assert sleep.delays == []

    def test_subclasses_are_retriable(self, sleep: SleepRecorder) -> None:
        """Test retriable kinds match subclasses."""
        operation = FlakyOperation(failures=1, error=SpecificTransientError("x"))
        config = RetryConfig(max_tries=2, retriable=(TransientError,))

        assert run(operation, config, sleep) == "ok"

    def test_predicate_bound(self, sleep: SleepRecorder) -> None:
        """Test a predicate decides whether another attempt is allowed."""
        operation = FlakyOperation(failures=100)
        seen: list[Exception] = []

        def allow(exc: Exception) -> bool:
            seen.append(exc)
            return len(seen) < 4

        config = RetryConfig(max_tries=allow, retriable=(TransientError,))

        with pytest.raises(TransientError):
            run(operation, config, sleep)

        assert operation.calls == 4
        assert all(isinstance(e, TransientError) for e in seen)

    def test_fixed_delay(self, sleep: SleepRecorder) -> None:
        """Test positive delays are waited exactly."""
        operation = FlakyOperation(failures=2)
        config = RetryConfig(max_tries=3, delay=1.5, retriable=(TransientError,))

        run(operation, config, sleep)

        assert sleep.delays == [1.5, 1.5]

    def test_random_delay(self, sleep: SleepRecorder) -> None:
        """Test negative delays wait a random time up to the bound."""
        operation = FlakyOperation(failures=3)
        config = RetryConfig(max_tries=4, delay=-2.0, retriable=(TransientError,))

        run(operation, config, sleep)

        assert len(sleep.delays) == 3
        assert all(0.0 <= d <= 2.0 for d in sleep.delays)


class TestHandlers:
    """Tests for handler dispatch and results."""

    def test_handler_order(self, sleep: SleepRecorder) -> None:
        """Test DEFAULT runs first, then the most specific handler, then RETRY."""
        calls: list[str] = []
        config = RetryConfig(
            max_tries=2,
            retriable=(TransientError,),
            handlers={
                HandlerKey.DEFAULT: lambda *_: calls.append("default"),
                Exception: lambda *_: calls.append("exception"),
                TransientError: lambda *_: calls.append("transient"),
                HandlerKey.RETRY: lambda *_: calls.append("retry"),
            },
        )

        run(FlakyOperation(failures=1, error=SpecificTransientError("x")), config, sleep)

        assert calls == ["default", "transient", "retry"]

    def test_handler_receives_failure_state(self, sleep: SleepRecorder) -> None:
        """Test handlers receive the exception, tries remaining and retriability."""
        received: list[tuple[str, int | None, bool]] = []

        def handler(exc: Exception, remaining: int | None, retriable: bool) -> None:
            received.append((str(exc), remaining, retriable))

        config = RetryConfig(
            max_tries=2,
            retriable=(TransientError,),
            handlers={TransientError: handler},
        )

        with pytest.raises(TransientError):
            run(FlakyOperation(failures=5), config, sleep)

        assert received == [("transient", 1, True), ("transient", 0, False)]

    def test_return_value_stops_retrying(self, sleep: SleepRecorder) -> None:
        """Test a handler can force a return value on a given attempt."""
        attempts: list[int | None] = []

        def stop_on_second(
            _exc: Exception, remaining: int | None, _retriable: bool
        ) -> Continue | ReturnValue[str]:
            attempts.append(remaining)
            if remaining == 1:
                return ReturnValue("stopped")
            return Continue()

        operation = FlakyOperation(failures=100)
        config = RetryConfig(
            max_tries=3,
            retriable=(TransientError,),
            handlers={TransientError: stop_on_second},
        )

        assert run(operation, config, sleep) == "stopped"
        assert operation.calls == 2
        assert attempts == [2, 1]

    def test_return_value_from_default_skips_specific(
        self, sleep: SleepRecorder
    ) -> None:
        """Test a DEFAULT handler's return value short-circuits other handlers."""
        calls: list[str] = []
        config = RetryConfig(
            handlers={
                HandlerKey.DEFAULT: lambda *_: ReturnValue(None),
                FatalError: lambda *_: calls.append("fatal"),
            },
        )

        assert run(FlakyOperation(failures=1, error=FatalError("x")), config, sleep) is None
        assert calls == []

    def test_retry_result_makes_failure_retriable(self, sleep: SleepRecorder) -> None:
        """Test a handler can retry an exception outside the retriable kinds."""
        operation = FlakyOperation(failures=1, error=FatalError("x"))
        config = RetryConfig(max_tries=2, handlers={FatalError: lambda *_: Retry()})

        assert run(operation, config, sleep) == "ok"
        assert operation.calls == 2

    def test_retry_result_respects_bound(self, sleep: SleepRecorder) -> None:
        """Test Retry does not exceed max_tries."""
        operation = FlakyOperation(failures=5, error=FatalError("x"))
        config = RetryConfig(max_tries=2, handlers={FatalError: lambda *_: Retry()})

        with pytest.raises(FatalError):
            run(operation, config, sleep)

        assert operation.calls == 2

    def test_handler_exception_aborts(self, sleep: SleepRecorder) -> None:
        """Test an exception raised by a handler propagates."""

        def explode(*_: object) -> None:
            raise RuntimeError("handler failed")

        operation = FlakyOperation(failures=1)
        config = RetryConfig(
            max_tries=3,
            retriable=(TransientError,),
            handlers={HandlerKey.DEFAULT: explode},
        )

        with pytest.raises(RuntimeError, match="handler failed"):
            run(operation, config, sleep)

        assert operation.calls == 1


class TestWait:
    """Tests for wait."""

    def test_zero_delay_does_not_sleep(self, sleep: SleepRecorder) -> None:
        """Test no sleep happens for a zero delay."""
        assert wait(0.0, sleep) == 0.0
        assert sleep.delays == []

    def test_returns_seconds_waited(self, sleep: SleepRecorder) -> None:
        """Test the wait time is returned."""
        assert wait(0.25, sleep) == 0.25
        assert sleep.delays == [0.25]


class TestRetryEngine:
    """Tests for the RetryEngine wrapper."""

    def test_uses_default_config(self, sleep: SleepRecorder) -> None:
        """Test the engine applies its configuration."""
        engine = RetryEngine(
            RetryConfig(max_tries=2, delay=0.5, retriable=(TransientError,)),
            sleep=sleep,
        )

        assert engine.execute(FlakyOperation(failures=1)) == "ok"
        assert sleep.delays == [0.5]

    def test_config_override(self, sleep: SleepRecorder) -> None:
        """Test a per-call configuration replaces the default."""
        engine = RetryEngine(RetryConfig(max_tries=5, retriable=(TransientError,)), sleep=sleep)
        operation = FlakyOperation(failures=5)

        with pytest.raises(TransientError):
            engine.execute(operation, RetryConfig(max_tries=1, retriable=(TransientError,)))

        assert operation.calls == 1
