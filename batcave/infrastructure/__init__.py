"""
Asyncio implementations of the batcave primitives.
"""

from batcave.infrastructure.event_loop import EventLoop, new_event_loop
from batcave.infrastructure.queue import BoundedQueue
from batcave.infrastructure.timeout import deadline, wrap_with_timeout

__all__ = [
    "BoundedQueue",
    "EventLoop",
    "deadline",
    "new_event_loop",
    "wrap_with_timeout",
]
