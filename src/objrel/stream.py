"""
Lazy token streams.

A stream is a linked list whose tail is computed on first access and then
remembered, so parsers can backtrack to any earlier node without re-lexing.
"""

from typing import Any, Callable, Iterator, List, Optional


class Stream:
    """One node of a lazy stream"""

    __slots__ = ("head", "index", "_tail", "_promise")

    def __init__(self, head: Any, index: int, promise: Callable[[], Optional["Stream"]]):
        self.head = head
        self.index = index
        self._tail: Optional[Stream] = None
        self._promise: Optional[Callable[[], Optional[Stream]]] = promise

    @property
    def tail(self) -> Optional["Stream"]:
        if self._promise is not None:
            self._tail = self._promise()
            self._promise = None
        return self._tail

    def __iter__(self) -> Iterator[Any]:
        node: Optional[Stream] = self
        while node is not None:
            yield node.head
            node = node.tail

    def __repr__(self) -> str:
        return f"Stream({self.head!r}, ...)"


def iterator_to_stream(iterator: Iterator[Any], index: int = 0) -> Optional[Stream]:
    """Wrap an iterator in a stream. Returns None for an exhausted iterator"""
    try:
        head = next(iterator)
    except StopIteration:
        return None
    return Stream(head, index, lambda: iterator_to_stream(iterator, index + 1))


def stream_to_list(stream: Optional[Stream]) -> List[Any]:
    return [] if stream is None else list(stream)


__all__ = ["Stream", "iterator_to_stream", "stream_to_list"]
