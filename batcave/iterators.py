"""
Lazy transforms over an iteration source.
"""

from typing import Any, Callable, Iterable, Iterator, TypeVar

T = TypeVar("T")
U = TypeVar("U")

_MISSING: Any = object()


class LazyIterator(Iterable[T]):
    """
    Single-pass wrapper over an iterable with chainable filter/map/reduce.

    Nothing is consumed until the wrapper is iterated or reduced.
    """

    def __init__(self, source: Iterable[T]) -> None:
        self._source = iter(source)

    def __iter__(self) -> Iterator[T]:
        yield from self._source

    def filter(self, filter_fn: Callable[[T], Any]) -> "LazyIterator[T]":
        return iterator_filter(self._source, filter_fn)

    def map(self, map_fn: Callable[[T], U]) -> "LazyIterator[U]":
        return iterator_map(self._source, map_fn)

    def reduce(self, reducer: Callable[[Any, T], Any], initial: Any = _MISSING) -> Any:
        return iterator_reduce(self._source, reducer, initial)


def iterator_wrap(source: Iterable[T]) -> LazyIterator[T]:
    """Wrap an iterable so transforms can be chained on it."""
    return LazyIterator(source)


def iterator_filter(source: Iterable[T], filter_fn: Callable[[T], Any]) -> LazyIterator[T]:
    """Lazily keep the items for which filter_fn is truthy."""
    return LazyIterator(value for value in source if filter_fn(value))


def iterator_map(source: Iterable[T], map_fn: Callable[[T], U]) -> LazyIterator[U]:
    """Lazily apply map_fn to every item."""
    return LazyIterator(map_fn(value) for value in source)


def iterator_reduce(
    source: Iterable[T],
    reducer: Callable[[Any, T], Any],
    initial: Any = _MISSING,
) -> Any:
    """
    Fold the source into a single value.

    Without ``initial`` the first item seeds the accumulator, and an empty
    source yields None.
    """
    iterator = iter(source)
    if initial is _MISSING:
        accumulator = next(iterator, None)
    else:
        accumulator = initial
    for value in iterator:
        accumulator = reducer(accumulator, value)
    return accumulator
