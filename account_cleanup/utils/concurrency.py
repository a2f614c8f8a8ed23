"""
Account Cleanup - Bounded concurrency helper
"""

import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def map_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int = 1,
) -> List[R]:
    """
    Run ``worker`` over ``items`` with at most ``limit`` calls in flight.

    Results come back in input order. With ``limit == 1`` items are processed
    strictly one after another, which is the default for the cleanup job.
    """
    if limit <= 1:
        results = []
        for item in items:
            results.append(await worker(item))
        return results

    semaphore = asyncio.Semaphore(limit)

    async def _run(item: T) -> R:
        async with semaphore:
            return await worker(item)

    return list(await asyncio.gather(*(_run(item) for item in items)))
