"""
Timeout domain value objects.
"""

from dataclasses import dataclass

DEFAULT_TIMEOUT_MS = 5000


@dataclass(frozen=True)
class TimeoutPolicy:
    """
    How long a wrapped call may take and what happens when it doesn't make it.

    Attributes:
        timeout_ms: Deadline in milliseconds.
        reject_on_timeout: If False the wrapped call is left pending forever
            instead of failing with TimeoutExpiredError.
    """

    timeout_ms: float = DEFAULT_TIMEOUT_MS
    reject_on_timeout: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.timeout_ms, bool) or not isinstance(self.timeout_ms, (int, float)):
            raise TypeError(f"timeout_ms must be a number, got {self.timeout_ms!r}")
        if self.timeout_ms < 0:
            raise ValueError(f"timeout_ms must not be negative, got {self.timeout_ms}")

    @property
    def seconds(self) -> float:
        """The deadline expressed in seconds, as asyncio timers expect."""
        return self.timeout_ms / 1000
