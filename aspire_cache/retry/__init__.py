"""Generic execute-with-retry engine.

Provides bounded retries of arbitrary operations with:
- Retriable exception classification
- Per-exception-kind handlers returning explicit results
- Fixed or randomised delays between attempts
"""

from aspire_cache.retry.constants import SOCKET_EXCEPTIONS
from aspire_cache.retry.engine import RetryEngine, execute, wait
from aspire_cache.retry.models import (
    Continue,
    Handler,
    HandlerKey,
    HandlerResult,
    Retry,
    RetryConfig,
    ReturnValue,
)


__all__ = [
    # Engine
    "RetryEngine",
    "execute",
    "wait",
    # Models
    "Continue",
    "Handler",
    "HandlerKey",
    "HandlerResult",
    "Retry",
    "RetryConfig",
    "ReturnValue",
    # Constants
    "SOCKET_EXCEPTIONS",
]
