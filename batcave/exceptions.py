"""
Exception module for batcave.

This module defines specific exceptions that may be raised by the component.
"""

from typing import Any

ANONYMOUS_FUNCTION_NAME = "<anonymous>"


class BatcaveError(Exception):
    """Base exception for errors raised by batcave."""


class TimeoutExpiredError(BatcaveError, TimeoutError):
    """
    Raised by a timeout-wrapped function when its deadline elapses first.

    Attributes:
        function_name: Name of the wrapped function, or "<anonymous>".
        timeout_ms: The configured deadline in milliseconds.
    """

    def __init__(self, function_name: str, timeout_ms: float) -> None:
        self.function_name = function_name or ANONYMOUS_FUNCTION_NAME
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Timeout-wrapped function {self.function_name} "
            f"took longer than {timeout_ms}ms to resolve"
        )

    @classmethod
    def for_function(cls, func: Any, timeout_ms: float) -> "TimeoutExpiredError":
        """Build the error from the wrapped callable itself."""
        return cls(getattr(func, "__name__", None) or ANONYMOUS_FUNCTION_NAME, timeout_ms)


class QueueConsistencyError(BatcaveError, AssertionError):
    """Raised when the queue's own bookkeeping is broken, e.g. a task has no result binding."""


class QueueLoopError(BatcaveError, RuntimeError):
    """Raised when a queue is pushed to without a usable event loop."""
