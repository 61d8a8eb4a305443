"""
Tests for async_utils module.

Covers run_sync and gather_limited.
"""

import asyncio
import threading
import time

import pytest

from spec_sync.core.async_utils import gather_limited, run_sync


def _sync_add(a: int, b: int) -> int:
    """Simple sync function for testing."""
    return a + b


async def _async_identity(x):
    await asyncio.sleep(0)
    return x


async def test_run_sync_calls_function():
    """run_sync delegates to asyncio.to_thread with correct args."""
    result = await run_sync(_sync_add, 3, 4)
    assert result == 7


async def test_run_sync_passes_kwargs():
    """run_sync forwards keyword arguments."""

    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    result = await run_sync(_kw_func, name="world")
    assert result == "hello world"


async def test_run_sync_runs_off_loop_thread():
    """The function executes on a worker thread."""
    loop_thread = threading.get_ident()
    worker_thread = await run_sync(threading.get_ident)
    assert worker_thread != loop_thread


async def test_run_sync_propagates_exceptions():
    def _boom():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        await run_sync(_boom)


async def test_gather_limited_preserves_order():
    """gather_limited returns results in input order."""
    coros = [_async_identity(i) for i in range(5)]
    results = await gather_limited(coros, limit=2)
    assert results == [0, 1, 2, 3, 4]


async def test_gather_limited_empty_list():
    """gather_limited handles empty coroutine list."""
    results = await gather_limited([], limit=5)
    assert results == []


async def test_gather_limited_rejects_bad_limit():
    with pytest.raises(ValueError, match="at least 1"):
        await gather_limited([], limit=0)


async def test_gather_limited_return_exceptions():
    """Failures come back in place when return_exceptions is set."""

    async def _fail():
        raise ValueError("nope")

    results = await gather_limited(
        [_async_identity(1), _fail(), _async_identity(3)],
        limit=2,
        return_exceptions=True,
    )

    assert results[0] == 1
    assert isinstance(results[1], ValueError)
    assert results[2] == 3


async def test_gather_limited_concurrency_bound():
    """At most `limit` coroutines run at the same time."""
    max_concurrent = 0
    current_concurrent = 0
    lock = threading.Lock()

    def _track_concurrency(val):
        nonlocal max_concurrent, current_concurrent
        with lock:
            current_concurrent += 1
            if current_concurrent > max_concurrent:
                max_concurrent = current_concurrent
        time.sleep(0.05)  # Hold for a bit so others overlap
        with lock:
            current_concurrent -= 1
        return val

    coros = [run_sync(_track_concurrency, i) for i in range(6)]
    results = await gather_limited(coros, limit=2)

    assert results == [0, 1, 2, 3, 4, 5]
    assert max_concurrent <= 2
