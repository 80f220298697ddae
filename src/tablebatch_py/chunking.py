from __future__ import annotations

from collections import deque
from collections.abc import Iterator, Sequence

MAX_MUTATION_BATCH = 25
MAX_READ_BATCH = 100
DEFAULT_PAGE_SIZE = 100


def chunked[T](items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of ``items`` holding at most ``size`` elements."""
    if size <= 0:
        raise ValueError("size must be > 0")
    for i in range(0, len(items), size):
        yield items[i : i + size]


def take[T](queue: deque[T], size: int) -> list[T]:
    """Pop up to ``size`` elements from the front of ``queue``."""
    if size <= 0:
        raise ValueError("size must be > 0")
    out: list[T] = []
    while queue and len(out) < size:
        out.append(queue.popleft())
    return out
