"""Explicit per-operation concurrency policy."""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def run_bounded(
    func: Callable[[T], R], items: Iterable[T], max_workers: int
) -> List[R]:
    """Apply ``func`` to every item with at most ``max_workers`` in flight.

    Results keep the input order. ``max_workers == 1`` runs inline on the
    calling thread. ``func`` is expected to capture its own per-item errors;
    anything it raises propagates.
    """
    items = list(items)
    if max_workers < 1:
        raise ValueError("max_workers must be at least 1")
    if max_workers == 1 or len(items) <= 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as executor:
        return list(executor.map(func, items))
