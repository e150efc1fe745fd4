"""
Asynchronous versions of sequence predicates.

The predicate runs for every item concurrently; results are reduced once
all of them are in.
"""

import asyncio
import inspect
from typing import Any, Callable, Iterable, List, TypeVar

T = TypeVar("T")


async def _evaluate(predicate: Callable[[T], Any], item: T) -> Any:
    result = predicate(item)
    if inspect.isawaitable(result):
        result = await result
    return result


async def _truths(items: List[T], predicate: Callable[[T], Any]) -> List[Any]:
    return await asyncio.gather(*(_evaluate(predicate, item) for item in items))


async def async_every(items: Iterable[T], predicate: Callable[[T], Any]) -> bool:
    """
    Check whether an (optionally async) predicate holds for every item.

    Args:
        items: Items to test.
        predicate: Called once per item; may return a bool or an awaitable.

    Returns:
        True if every result is truthy. An empty input yields True.

    Raises:
        Exception: The first exception raised by the predicate.
    """
    truth = await _truths(list(items), predicate)
    return all(truth)


async def async_filter(items: Iterable[T], predicate: Callable[[T], Any]) -> List[T]:
    """Return the items, in input order, whose (optionally async) predicate is truthy."""
    items = list(items)
    truth = await _truths(items, predicate)
    return [item for item, passed in zip(items, truth) if passed]
