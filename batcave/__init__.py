"""
Small asyncio concurrency primitives: a bounded task queue and a deadline wrapper.
"""

from batcave.core import new_queue, run, run_async_task
from batcave.domain.queue import DEFAULT_CONCURRENCY_LIMIT
from batcave.domain.timeout import DEFAULT_TIMEOUT_MS, TimeoutPolicy
from batcave.exceptions import BatcaveError, QueueConsistencyError, QueueLoopError, TimeoutExpiredError
from batcave.helpers import async_every, async_filter
from batcave.infrastructure import BoundedQueue, EventLoop, deadline, wrap_with_timeout
from batcave.iterators import (
    LazyIterator,
    iterator_filter,
    iterator_map,
    iterator_reduce,
    iterator_wrap,
)

__all__ = [
    "new_queue",
    "run",
    "run_async_task",
    "BoundedQueue",
    "EventLoop",
    "wrap_with_timeout",
    "deadline",
    "TimeoutPolicy",
    "DEFAULT_CONCURRENCY_LIMIT",
    "DEFAULT_TIMEOUT_MS",
    "BatcaveError",
    "TimeoutExpiredError",
    "QueueConsistencyError",
    "QueueLoopError",
    "async_every",
    "async_filter",
    "LazyIterator",
    "iterator_wrap",
    "iterator_filter",
    "iterator_map",
    "iterator_reduce",
]
