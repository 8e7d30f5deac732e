"""Single-flight call collapsing.

Concurrent callers asking for the same key share one in-flight task
instead of each issuing the underlying work.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class SingleFlight(Generic[K, V]):
    """Collapse concurrent calls per key into one task.

    Example:
        flight = SingleFlight()
        meta = await flight.do(address, lambda: fetch_metadata(address))

    The entry is dropped as soon as the task finishes, so a later call
    starts a fresh fetch. Results are never kept here; layer a cache on top
    if they should be.
    """

    def __init__(self) -> None:
        # Registry: key -> in-flight task
        self._inflight: dict[K, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    def in_flight(self, key: K) -> bool:
        return key in self._inflight

    async def do(self, key: K, fn: Callable[[], Awaitable[V]]) -> V:
        """Run ``fn`` for ``key`` unless a call for it is already running.

        A caller that gets cancelled stops waiting but does not cancel the
        shared task, other waiters still receive its result.
        """
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._forget(key, t))
            logger.debug(f"Single-flight started for {key}")
        else:
            logger.debug(f"Single-flight joined for {key}")

        return await asyncio.shield(task)

    def _forget(self, key: K, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the exception retrieved when every waiter was cancelled
        if not task.cancelled():
            task.exception()
