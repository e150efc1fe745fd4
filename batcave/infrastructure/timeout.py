"""
Deadline wrapper for coroutine functions.

A wrapped call races the underlying call against a timer. Whichever settles
first decides the outcome; the loser is discarded. The underlying call is never
cancelled, the caller just stops waiting for it.
"""

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Set, TypeVar

from batcave.domain.timeout import DEFAULT_TIMEOUT_MS, TimeoutPolicy
from batcave.exceptions import TimeoutExpiredError

logger = logging.getLogger(__name__)
T = TypeVar("T")

# Calls abandoned by their deadline keep running; hold them until they finish
_operations: Set["asyncio.Future[Any]"] = set()


def wrap_with_timeout(
    func: Callable[..., Awaitable[T]],
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    *,
    reject_on_timeout: bool = True,
) -> Callable[..., Awaitable[T]]:
    """
    Wrap an awaitable-returning function so callers wait at most ``timeout_ms``.

    Args:
        func: The function to wrap.
        timeout_ms: The time to wait before giving up, in milliseconds.
        reject_on_timeout: If False, the wrapped call is left pending forever
            rather than raising when the time limit expires.

    Returns:
        A coroutine function with the same call signature as func.

    Raises:
        TimeoutExpiredError: From the wrapped call, when the deadline elapses
            first and reject_on_timeout is True.

    Example:
        >>> fetch = wrap_with_timeout(fetch_page, 2000)
        >>> body = await fetch("https://example.com")
    """
    policy = TimeoutPolicy(timeout_ms, reject_on_timeout)

    @functools.wraps(func)
    async def timeoutified(*args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        outcome: "asyncio.Future[T]" = loop.create_future()
        overran = False

        def expire() -> None:
            nonlocal overran
            overran = True
            if outcome.done():
                return
            logger.warning(
                f"{getattr(func, '__name__', 'function')} did not settle within {policy.timeout_ms}ms"
            )
            if policy.reject_on_timeout:
                outcome.set_exception(TimeoutExpiredError.for_function(func, policy.timeout_ms))

        timer = loop.call_later(policy.seconds, expire)

        try:
            operation = asyncio.ensure_future(func(*args, **kwargs))
        except BaseException:
            timer.cancel()
            raise

        def forward(finished: "asyncio.Future[T]") -> None:
            timer.cancel()
            if finished.cancelled():
                if not overran and not outcome.done():
                    outcome.cancel()
                return

            # Always retrieve the exception so an abandoned failure is not reported as unhandled
            error = finished.exception()
            if overran or outcome.done():
                logger.debug("Discarding result of call that settled after its deadline")
                return
            if error is not None:
                outcome.set_exception(error)
            else:
                outcome.set_result(finished.result())

        _operations.add(operation)
        operation.add_done_callback(_operations.discard)
        operation.add_done_callback(forward)

        try:
            return await outcome
        finally:
            timer.cancel()

    return timeoutified


def deadline(
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    *,
    reject_on_timeout: bool = True,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator form of wrap_with_timeout.

    Example:
        >>> @deadline(30_000)
        ... async def long_operation():
        ...     await some_long_task()
    """
    # Reject bad arguments at decoration time
    TimeoutPolicy(timeout_ms, reject_on_timeout)

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        return wrap_with_timeout(func, timeout_ms, reject_on_timeout=reject_on_timeout)

    return decorator
