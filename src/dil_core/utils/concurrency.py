"""Bounded async fan-out used by the verification runner."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

T = TypeVar("T")
TItem = TypeVar("TItem")


class BoundedSemaphore:
    """Small wrapper over ``asyncio.Semaphore`` with usage diagnostics."""

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self._limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._in_use = 0
        self._peak = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def peak(self) -> int:
        return self._peak

    @asynccontextmanager
    async def permit(self) -> AsyncIterator[None]:
        await self._semaphore.acquire()
        self._in_use += 1
        self._peak = max(self._peak, self._in_use)
        try:
            yield
        finally:
            self._in_use -= 1
            self._semaphore.release()


async def gather_bounded(
    items: Sequence[TItem],
    worker: Callable[[TItem], Awaitable[T]],
    *,
    max_concurrency: int,
    semaphore: BoundedSemaphore | None = None,
) -> list[T]:
    """Run ``worker`` once per item, at most ``max_concurrency`` at a time.

    Results are returned in input order regardless of completion order.
    """

    gate = semaphore or BoundedSemaphore(max_concurrency)

    async def _run_one(item: TItem) -> T:
        async with gate.permit():
            return await worker(item)

    return list(await asyncio.gather(*(_run_one(item) for item in items)))


__all__ = ["BoundedSemaphore", "gather_bounded"]
