"""Order-preserving bounded concurrency for async mappers."""

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def map_with_concurrency(
    items: Sequence[T],
    limit: int,
    mapper: Callable[[T], Awaitable[R]],
) -> list[R]:
    """
    Apply an async mapper to every item with at most `limit` calls in flight.

    Workers pull the next unclaimed index until the input is exhausted, so the
    result list always lines up with `items` regardless of completion order.
    A mapper failure cancels the remaining workers and propagates; call sites
    that want a default must catch inside their mapper.

    Args:
        items: Ordered inputs.
        limit: Maximum concurrent mapper invocations (values below 1 mean 1).
        mapper: Coroutine function applied to each item.

    Returns:
        Results in input order.
    """
    safe_limit = max(1, int(limit))
    results: list = [None] * len(items)
    cursor = 0

    async def worker() -> None:
        nonlocal cursor
        while cursor < len(items):
            index = cursor
            cursor += 1
            results[index] = await mapper(items[index])

    workers = [
        asyncio.ensure_future(worker()) for _ in range(min(safe_limit, len(items)))
    ]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        for task in workers:
            task.cancel()
        raise

    return results
