"""
EventLoop component that owns the loop batcave primitives run on.
Uses uvloop unless told otherwise.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

import uvloop

logger = logging.getLogger(__name__)
T = TypeVar("T")


def new_event_loop(use_uvloop: bool = True) -> asyncio.AbstractEventLoop:
    """Create a fresh, not yet running event loop."""
    if use_uvloop:
        return uvloop.new_event_loop()
    return asyncio.new_event_loop()


class EventLoop:
    """
    Owns a single event loop and runs coroutines on it to completion.
    No magic, no hidden behavior: the loop is created on first use and
    closed by close() or when leaving the context manager.
    """

    def __init__(self, use_uvloop: bool = True, debug: bool = False) -> None:
        """Initialize the EventLoop."""
        self._use_uvloop = use_uvloop
        self._debug = debug
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        logger.debug("EventLoop initialized")

    def get_loop(self) -> asyncio.AbstractEventLoop:
        """Get the owned event loop, creating it if necessary."""
        if self._loop is None or self._loop.is_closed():
            self._loop = new_event_loop(self._use_uvloop)
            self._loop.set_debug(self._debug)
            logger.debug(f"Created {type(self._loop).__module__} event loop")
        return self._loop

    def run(self, coro: Awaitable[T]) -> T:
        """Run a coroutine on the owned loop until it completes."""
        loop = self.get_loop()
        if loop.is_running():
            raise RuntimeError("EventLoop.run() cannot be called while its loop is running")

        asyncio.set_event_loop(loop)
        try:
            return loop.run_until_complete(coro)
        finally:
            asyncio.set_event_loop(None)

    def is_running(self) -> bool:
        """Check if the owned loop exists and is currently running."""
        return self._loop is not None and self._loop.is_running()

    def is_closed(self) -> bool:
        """Check if there is no usable loop."""
        return self._loop is None or self._loop.is_closed()

    def close(self) -> None:
        """Cancel leftover tasks, shut down async generators and close the loop."""
        if self._loop is None or self._loop.is_closed():
            self._loop = None
            return

        loop = self._loop
        try:
            pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                logger.debug(f"Cancelling {len(pending)} leftover task(s)")
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
        finally:
            loop.close()
            self._loop = None
            logger.debug("Event loop closed")

    def __enter__(self) -> "EventLoop":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
