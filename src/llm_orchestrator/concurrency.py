"""
Async concurrency helpers.

The runtime is async-first, but native capabilities are often plain
synchronous functions, so ``run_sync`` moves them onto a shared thread pool.
The remaining helpers bound fan-out (``gather_bounded``, ``BatchRunner``),
enforce deadlines (``run_with_deadline``) and keep results in input order no
matter which task finishes first.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, Generic, TypeVar

from .cancellation import CancellationToken
from .errors import TimedOutError

T = TypeVar("T")


def _default_max_workers() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


_EXECUTOR = ThreadPoolExecutor(max_workers=_default_max_workers())


async def run_sync(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """
    Run a synchronous callable in a shared thread pool.
    """
    # Poll the concurrent future instead of relying on call_soon_threadsafe
    # wakeups, which hang in some sandboxed event loops.
    future = _EXECUTOR.submit(partial(func, *args, **kwargs))
    try:
        while True:
            if future.done():
                return future.result()
            await asyncio.sleep(0.001)
    except asyncio.CancelledError:
        future.cancel()
        raise


async def run_with_deadline(
    awaitable: Awaitable[T],
    *,
    timeout: float | None = None,
    cancellation_token: CancellationToken | None = None,
) -> T:
    """
    Await ``awaitable`` under an optional timeout and cancellation token.

    Raises:
        TimedOutError: The timeout elapsed first. The inner task is cancelled.
        CancelledError: The token fired first. The inner task is cancelled.
    """
    token = cancellation_token or CancellationToken.none()
    guarded = token.guard(awaitable)
    if timeout is None:
        return await guarded
    try:
        return await asyncio.wait_for(guarded, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise TimedOutError(f"Operation timed out after {timeout}s", timeout=timeout, cause=exc) from exc


@dataclass
class Outcome(Generic[T]):
    """Result slot for one task of a batch: either a value or an error."""

    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


async def gather_bounded(
    factories: Iterable[Callable[[], Awaitable[T]]],
    *,
    max_concurrency: int | None = None,
    return_exceptions: bool = False,
) -> list[Any]:
    """
    Run coroutine factories concurrently, at most ``max_concurrency`` at a time.

    Results are returned in input order. With ``return_exceptions=False`` the
    first failure (by completion time) cancels the remaining tasks and is
    re-raised; otherwise exceptions are placed in their slot.
    """
    factories = list(factories)
    if max_concurrency is not None and max_concurrency < 1:
        raise ValueError("max_concurrency must be >= 1")
    semaphore = asyncio.Semaphore(max_concurrency or max(len(factories), 1))

    async def _run(factory: Callable[[], Awaitable[T]]) -> T:
        async with semaphore:
            return await factory()

    tasks = [asyncio.ensure_future(_run(f)) for f in factories]
    try:
        return await asyncio.gather(*tasks, return_exceptions=return_exceptions)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class BatchRunner:
    """
    Semaphore-bounded batch execution.

    Example:
        ```python
        runner = BatchRunner(max_concurrency=4)
        outcomes = await runner.run([lambda: agent.prompt(q) for q in questions])
        answers = [o.value for o in outcomes if o.ok]
        ```
    """

    DEFAULT_MAX_CONCURRENCY = 8

    def __init__(self, max_concurrency: int = DEFAULT_MAX_CONCURRENCY):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency
        self.semaphore = asyncio.Semaphore(max_concurrency)

    async def run_one(self, factory: Callable[[], Awaitable[T]]) -> T:
        async with self.semaphore:
            return await factory()

    async def run(self, factories: Iterable[Callable[[], Awaitable[T]]]) -> list[Outcome[T]]:
        """Run every factory and return one ``Outcome`` per input, in input order."""
        results = await asyncio.gather(
            *(self.run_one(f) for f in factories),
            return_exceptions=True,
        )
        out: list[Outcome[T]] = []
        for result in results:
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                out.append(Outcome(error=result))
            else:
                out.append(Outcome(value=result))
        return out

    async def iter_completed(self, factories: Iterable[Callable[[], Awaitable[T]]]) -> AsyncIterator[T]:
        """Yield results as they complete (completion order, not input order)."""
        for fut in asyncio.as_completed([self.run_one(f) for f in factories]):
            yield await fut


__all__ = [
    "run_sync",
    "run_with_deadline",
    "gather_bounded",
    "Outcome",
    "BatchRunner",
]
