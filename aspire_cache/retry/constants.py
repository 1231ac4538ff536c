"""Constants for the retry engine."""

# Socket-level failures that are usually transient
SOCKET_EXCEPTIONS: tuple[type[Exception], ...] = (
    ConnectionError,
    InterruptedError,
    TimeoutError,
    BlockingIOError,
)

# Log component name
COMPONENT_RETRY = "retry"
