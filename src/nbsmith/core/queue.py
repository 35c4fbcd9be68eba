"""Single-concurrency FIFO dispatcher for asynchronous operations.

Architecture
: `RequestQueue` accepts zero-argument callables returning awaitables and runs
  them one at a time in submission order. A single worker task drains the
  queue with an explicit loop; it is started eagerly when work arrives on an
  idle queue, so the first operation begins before `dispatch` returns.
: A failing operation only fails its own future. The loop moves on to the next
  item regardless of the outcome, including an operation that ends cancelled.
  Cancelling the worker itself cancels every operation still waiting.

Usage Example
:
    >>> import asyncio
    >>> from nbsmith.core.queue import RequestQueue
    >>> async def main():
    ...     queue = RequestQueue()
    ...     async def work():
    ...         return 42
    ...     return await queue.submit(work)
    >>> asyncio.run(main())
    42
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar


T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]


@dataclass(slots=True)
class _QueueItem(Generic[T]):
    operation: Callable[[], Awaitable[T]]
    future: asyncio.Future[T]


class RequestQueue(Generic[T]):
    """Serialise asynchronous operations so at most one is in flight."""

    def __init__(self) -> None:
        self._pending: deque[_QueueItem[T]] = deque()
        self._running = False
        self._worker: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def running(self) -> bool:
        """Return whether an operation is currently being drained."""
        return self._running

    def dispatch(self, operation: Callable[[], Awaitable[T]]) -> asyncio.Future[T]:
        """Enqueue ``operation`` and return a future resolving to its result."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()
        self._pending.append(_QueueItem(operation=operation, future=future))
        if not self._running:
            self._running = True
            self._worker = asyncio.eager_task_factory(loop, self._drain())
        return future

    async def submit(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Enqueue ``operation`` and wait for its result."""
        return await self.dispatch(operation)

    async def join(self) -> None:
        """Wait until every operation queued so far has completed."""
        worker = self._worker
        if worker is not None and not worker.done():
            await asyncio.shield(worker)

    async def _drain(self) -> None:
        try:
            while self._pending:
                item = self._pending.popleft()
                await self._run(item)
        except asyncio.CancelledError:
            while self._pending:
                self._pending.popleft().future.cancel()
            raise
        finally:
            self._running = False

    @staticmethod
    async def _run(item: _QueueItem[Any]) -> None:
        try:
            result = await item.operation()
        except asyncio.CancelledError:
            item.future.cancel()
            worker = asyncio.current_task()
            # Only a cancelled worker stops the loop; an operation cancelled
            # from within fails its own caller like any other error.
            if worker is not None and worker.cancelling():
                raise
        except Exception as exc:
            if not item.future.done():
                item.future.set_exception(exc)
        else:
            if not item.future.done():
                item.future.set_result(result)


__all__ = ["Operation", "RequestQueue"]
