"""
Bounded-concurrency task queue.

Admits callables, starts them in FIFO order and never runs more than
``concurrency_limit`` of them at once. Every push returns an asyncio Future
that settles with that task's own outcome.
"""

import asyncio
import functools
import inspect
import itertools
import logging
from collections import deque
from typing import Any, Deque, Dict, Optional, Set, Tuple

from batcave.domain.queue import DEFAULT_CONCURRENCY_LIMIT, Task, TaskQueue, Ticket
from batcave.exceptions import QueueConsistencyError, QueueLoopError

logger = logging.getLogger(__name__)


class BoundedQueue(TaskQueue):
    """
    Runs pushed tasks with at most ``concurrency_limit`` executing at once.

    All bookkeeping happens synchronously on the loop thread (push, settlement
    and clear never await), so the queue needs no locks but is not thread-safe.
    """

    def __init__(
        self,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """
        Initialize the queue.

        Args:
            concurrency_limit: Maximum number of tasks running simultaneously.
            loop: Event loop to run tasks on. When given, the queue stays on it
                and tasks may be pushed before it runs. Otherwise the queue
                follows the running loop of each push, moving to a new loop
                only while it is idle or once its previous loop is closed.

        Raises:
            ValueError: If concurrency_limit is not a positive integer.
        """
        if isinstance(concurrency_limit, bool) or not isinstance(concurrency_limit, int):
            raise ValueError(f"concurrency_limit must be an integer, got {concurrency_limit!r}")
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be at least 1, got {concurrency_limit}")

        self._concurrency_limit = concurrency_limit
        self._pinned_loop = loop
        self._loop = loop
        self._tickets = itertools.count(1)
        self._pending: Deque[Tuple[Ticket, Task]] = deque()
        self._running: Dict[Ticket, Task] = {}
        self._bindings: Dict[Ticket, "asyncio.Future[Any]"] = {}
        self._executions: Set["asyncio.Task[None]"] = set()
        self._scheduling = False
        self._wakeup: Optional[asyncio.Handle] = None
        logger.debug(f"BoundedQueue initialized with concurrency limit {concurrency_limit}")

    @property
    def concurrency_limit(self) -> int:
        """Maximum number of tasks running simultaneously."""
        return self._concurrency_limit

    @property
    def running_count(self) -> int:
        """Number of submissions currently executing."""
        return len(self._running)

    @property
    def pending_count(self) -> int:
        """Number of submissions waiting for a free slot."""
        return len(self._pending)

    def push(self, task: Task) -> "asyncio.Future[Any]":
        """
        Admit a task and return its result handle immediately.

        Args:
            task: Zero-argument callable returning an awaitable or a plain value.

        Returns:
            Future that settles with the task's return value or its exception.

        Raises:
            TypeError: If task is not callable.
            QueueLoopError: If no event loop is running, or the queue still has
                work on another live loop.
        """
        if not callable(task):
            raise TypeError(f"Queue tasks must be callable, got {type(task).__name__}")

        loop = self._bind_loop()
        ticket = Ticket(next(self._tickets))
        binding: "asyncio.Future[Any]" = loop.create_future()
        self._bindings[ticket] = binding
        self._pending.append((ticket, task))
        logger.debug(f"Task #{ticket} admitted ({len(self._pending)} pending)")

        if self._wakeup is None:
            self._wakeup = loop.call_soon(self._wake)
        return binding

    def clear(self) -> None:
        """
        Discard every pending task.

        Running tasks are unaffected. Handles of discarded tasks are never settled.
        """
        discarded = len(self._pending)
        while self._pending:
            ticket, _ = self._pending.popleft()
            self._bindings.pop(ticket, None)
        if discarded:
            logger.debug(f"Cleared {discarded} pending task(s)")

    def running(self) -> Set[Task]:
        """Return a copy of the set of tasks currently executing."""
        return set(self._running.values())

    def _bind_loop(self) -> asyncio.AbstractEventLoop:
        if self._pinned_loop is not None:
            return self._pinned_loop

        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            raise QueueLoopError("BoundedQueue.push() must be called from a running event loop") from None

        if self._loop is current:
            return current

        busy = len(self._pending) + len(self._running)
        if busy and self._loop is not None and not self._loop.is_closed():
            raise QueueLoopError(f"Queue still has {busy} task(s) on another live event loop")
        if busy:
            logger.warning(f"Dropping {busy} task(s) left behind on a closed event loop")

        self._pending.clear()
        self._running.clear()
        self._bindings.clear()
        self._executions.clear()
        self._wakeup = None
        self._loop = current
        logger.debug("BoundedQueue bound to a new event loop")
        return current

    def _wake(self) -> None:
        self._wakeup = None
        self._schedule()

    def _schedule(self) -> None:
        """Start pending tasks while there are free slots."""
        if self._scheduling:
            return

        self._scheduling = True
        try:
            while self._pending and len(self._running) < self._concurrency_limit:
                ticket, task = self._pending.popleft()
                if ticket not in self._bindings:
                    logger.error(f"Task #{ticket} has no result binding")
                    raise QueueConsistencyError(
                        f"Missing result binding for queue task #{ticket} "
                        f"({getattr(task, '__name__', repr(task))})"
                    )

                self._running[ticket] = task
                execution = self._loop.create_task(self._execute(ticket, task))
                self._executions.add(execution)
                execution.add_done_callback(self._executions.discard)
                execution.add_done_callback(functools.partial(self._on_execution_done, ticket))
                logger.debug(f"Task #{ticket} started ({len(self._running)} running)")
        finally:
            self._scheduling = False

    async def _execute(self, ticket: Ticket, task: Task) -> None:
        try:
            result = task()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            self._settle(ticket, error=e)
        else:
            self._settle(ticket, value=result)

    def _on_execution_done(self, ticket: Ticket, execution: "asyncio.Task[None]") -> None:
        # A cancelled execution may never have entered _execute at all
        if execution.cancelled() and ticket in self._running:
            self._settle(ticket, cancelled=True)

    def _settle(
        self,
        ticket: Ticket,
        value: Any = None,
        error: Optional[BaseException] = None,
        cancelled: bool = False,
    ) -> None:
        """Release the slot, settle the binding once, then backfill."""
        self._running.pop(ticket, None)
        binding = self._bindings.pop(ticket, None)

        if binding is None:
            logger.error(f"Task #{ticket} finished without a result binding")
            raise QueueConsistencyError(f"Missing result binding for finished queue task #{ticket}")

        # The caller may have cancelled the handle; the slot is released all the same
        if not binding.done():
            if cancelled:
                binding.cancel()
            elif error is not None:
                binding.set_exception(error)
            else:
                binding.set_result(value)

        outcome = "cancelled" if cancelled else ("failed" if error is not None else "completed")
        logger.debug(f"Task #{ticket} {outcome}")

        self._schedule()
