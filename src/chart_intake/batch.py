"""Batch and bounded-concurrency helpers for the ingestion pipeline."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


def batch_iter(items: list[T], batch_size: int) -> Iterator[tuple[int, list[T]]]:
    """Iterate over items in batches.

    Args:
        items: List of items to process
        batch_size: Maximum size of each batch

    Yields:
        (start offset, batch) pairs, each batch up to batch_size in length
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    for i in range(0, len(items), batch_size):
        yield i, items[i : i + batch_size]


async def run_bounded(
    items: list[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int,
) -> list[R]:
    """Run worker over items with at most `limit` in flight.

    Results come back in item order. The first exception propagates once
    every started worker has finished.
    """
    semaphore = asyncio.Semaphore(limit)

    async def guarded(item: T) -> R:
        async with semaphore:
            return await worker(item)

    results = await asyncio.gather(*(guarded(item) for item in items), return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results  # type: ignore[return-value]
