"""Bounded concurrency for URL-level checks."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Iterator, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ConcurrencyLimiter:
    """Caps the number of callables executing at once.

    ``run`` may be called from any number of threads; at most ``limit`` of
    them are inside the wrapped callable at the same time.
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError(f"Concurrency limit must be at least 1, got {limit}")
        self.limit = limit
        self._semaphore = threading.BoundedSemaphore(limit)

    def run(self, fn: Callable[..., R], *args, **kwargs) -> R:
        with self._semaphore:
            return fn(*args, **kwargs)

    def map_unordered(self, fn: Callable[[T], R], items: Iterable[T]) -> Iterator[Tuple[T, "Future[R]"]]:
        """Run ``fn`` over ``items`` and yield ``(item, future)`` as each finishes.

        Exceptions stay inside the futures; the caller decides what a failure means.
        """
        items = list(items)
        if not items:
            return
        with ThreadPoolExecutor(max_workers=min(self.limit, len(items)), thread_name_prefix="check") as pool:
            futures = {pool.submit(self.run, fn, item): item for item in items}
            for future in as_completed(futures):
                yield futures[future], future
