"""Async utilities for bridging blocking client calls to the event loop."""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Used to wrap blocking ``gh`` subprocess and XML-RPC calls inside the
    async adapter and scanner methods.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        issue = await run_sync(client.get_issue, 42)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def gather_limited(
    coros: Sequence[Coroutine[Any, Any, T]],
    limit: int,
    return_exceptions: bool = False,
) -> list[Any]:
    """Run coroutines concurrently with at most *limit* in flight.

    The semaphore is created per call, so independent batches never share
    a budget.  Results come back in input order.

    Args:
        coros: Sequence of coroutines to run concurrently.
        limit: Maximum number of coroutines awaited at the same time.
        return_exceptions: When True, exceptions are returned in place of
            results instead of propagating from the first failure.

    Returns:
        List of results (or exceptions) in the same order as *coros*.
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    semaphore = asyncio.Semaphore(limit)

    async def _bounded(coro: Coroutine[Any, Any, T]) -> T:
        async with semaphore:
            return await coro

    logger.debug(
        "Running %d coroutines with concurrency limit %d",
        len(coros),
        limit,
    )
    return list(
        await asyncio.gather(
            *(_bounded(c) for c in coros),
            return_exceptions=return_exceptions,
        )
    )
