"""
Task queue domain abstractions and value objects.
"""

import asyncio
from typing import Any, Awaitable, Callable, NewType, Protocol, Set, TypeVar, Union, runtime_checkable

T = TypeVar("T")

DEFAULT_CONCURRENCY_LIMIT = 2

# Identity of a single submission; the same callable pushed twice gets two tickets
Ticket = NewType("Ticket", int)

Task = Callable[[], Union[Awaitable[Any], Any]]


@runtime_checkable
class TaskQueue(Protocol):
    """Protocol defining the bounded task queue interface."""

    def push(self, task: Task) -> "asyncio.Future[Any]":
        """Admit a task and return the handle that settles with its outcome."""
        ...

    def clear(self) -> None:
        """Discard every task that has not started yet."""
        ...

    def running(self) -> Set[Task]:
        """Return a snapshot of the tasks currently executing."""
        ...
