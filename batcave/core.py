"""
Core entry points of batcave.
"""

import logging
from typing import Awaitable, Optional, TypeVar

from batcave.domain.queue import DEFAULT_CONCURRENCY_LIMIT
from batcave.infrastructure.event_loop import EventLoop
from batcave.infrastructure.queue import BoundedQueue
from batcave.infrastructure.timeout import wrap_with_timeout

logger = logging.getLogger(__name__)
T = TypeVar("T")


def new_queue(concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT) -> BoundedQueue:
    """
    Create a bounded task queue.

    Args:
        concurrency_limit: Maximum number of tasks running simultaneously.

    Returns:
        A BoundedQueue bound to the loop running when its first task is pushed.
    """
    return BoundedQueue(concurrency_limit)


def run(main: Awaitable[T], *, use_uvloop: bool = True, debug: bool = False) -> T:
    """
    Run a coroutine to completion on a fresh event loop and close the loop.

    Args:
        main: Coroutine to execute.
        use_uvloop: Run on uvloop (default) or on the stock asyncio loop.
        debug: Enable asyncio debug mode.

    Returns:
        The result of the coroutine.
    """
    with EventLoop(use_uvloop=use_uvloop, debug=debug) as event_loop:
        return event_loop.run(main)


def run_async_task(task: Awaitable[T], timeout_ms: Optional[float] = None) -> T:
    """
    Run an async task from synchronous code and wait for its result.

    Args:
        task: Async task to execute
        timeout_ms: Maximum time to wait for the result in milliseconds

    Returns:
        The result of the task

    Raises:
        TimeoutExpiredError: If the operation times out
        Exception: Any exception raised by the task
    """
    if timeout_ms is None:
        return run(task)

    async def bounded() -> T:
        return await task

    logger.debug(f"Running task with a {timeout_ms}ms deadline")
    return run(wrap_with_timeout(bounded, timeout_ms)())
