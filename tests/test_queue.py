from __future__ import annotations

import asyncio

import pytest

from nbsmith.core.queue import RequestQueue


def test_operations_run_one_at_a_time_in_submission_order() -> None:
    trace: list[str] = []

    def make(name: str, delay: float):
        async def operation() -> str:
            trace.append(f"start {name}")
            await asyncio.sleep(delay)
            trace.append(f"end {name}")
            return name

        return operation

    async def main() -> list[str]:
        queue: RequestQueue[str] = RequestQueue()
        futures = [
            queue.dispatch(make("a", 0.02)),
            queue.dispatch(make("b", 0.0)),
            queue.dispatch(make("c", 0.01)),
        ]
        return list(await asyncio.gather(*futures))

    assert asyncio.run(main()) == ["a", "b", "c"]
    assert trace == ["start a", "end a", "start b", "end b", "start c", "end c"]


def test_failure_only_rejects_its_own_future() -> None:
    async def boom() -> str:
        raise ValueError("boom")

    async def fine() -> str:
        return "ok"

    async def main() -> tuple[BaseException | str, str]:
        queue: RequestQueue[str] = RequestQueue()
        failing = queue.dispatch(boom)
        succeeding = queue.dispatch(fine)
        results = await asyncio.gather(failing, succeeding, return_exceptions=True)
        return results[0], results[1]

    error, value = asyncio.run(main())
    assert isinstance(error, ValueError)
    assert value == "ok"


def test_idle_queue_starts_work_before_dispatch_returns() -> None:
    started: list[int] = []

    async def operation() -> None:
        started.append(1)
        await asyncio.sleep(0)

    async def main() -> list[int]:
        queue: RequestQueue[None] = RequestQueue()
        future = queue.dispatch(operation)
        observed = list(started)
        await future
        return observed

    assert asyncio.run(main()) == [1]


def test_queue_recovers_after_draining() -> None:
    def value(result: int):
        async def operation() -> int:
            await asyncio.sleep(0)
            return result

        return operation

    async def main() -> tuple[int, bool, int, bool]:
        queue: RequestQueue[int] = RequestQueue()
        first = await queue.submit(value(1))
        await queue.join()
        idle_after_first = queue.running
        second = await queue.submit(value(2))
        await queue.join()
        return first, idle_after_first, second, queue.running

    assert asyncio.run(main()) == (1, False, 2, False)


def test_pending_length_tracks_waiting_operations() -> None:
    async def main() -> tuple[int, int]:
        queue: RequestQueue[None] = RequestQueue()
        gate = asyncio.Event()

        async def blocker() -> None:
            await gate.wait()

        async def noop() -> None:
            return None

        first = queue.dispatch(blocker)
        second = queue.dispatch(noop)
        waiting = len(queue)
        gate.set()
        await asyncio.gather(first, second)
        return waiting, len(queue)

    assert asyncio.run(main()) == (1, 0)


def test_submit_propagates_operation_errors() -> None:
    async def boom() -> None:
        raise RuntimeError("nope")

    async def main() -> None:
        queue: RequestQueue[None] = RequestQueue()
        await queue.submit(boom)

    with pytest.raises(RuntimeError, match="nope"):
        asyncio.run(main())


def test_synchronous_raise_only_rejects_its_own_future() -> None:
    def broken():
        raise ValueError("sync")

    async def fine() -> str:
        return "ok"

    async def main() -> list[BaseException | str]:
        queue: RequestQueue[str] = RequestQueue()
        failing = queue.dispatch(broken)
        succeeding = queue.dispatch(fine)
        return await asyncio.gather(failing, succeeding, return_exceptions=True)

    error, value = asyncio.run(main())
    assert isinstance(error, ValueError)
    assert str(error) == "sync"
    assert value == "ok"


def test_cancelled_operation_does_not_stall_the_queue() -> None:
    async def cancelled() -> str:
        inner = asyncio.get_running_loop().create_future()
        inner.cancel()
        return await inner

    async def fine() -> str:
        await asyncio.sleep(0)
        return "ok"

    async def main() -> tuple[bool, str]:
        queue: RequestQueue[str] = RequestQueue()
        first = queue.dispatch(cancelled)
        second = queue.dispatch(fine)
        value = await asyncio.wait_for(second, 1)
        return first.cancelled(), value

    assert asyncio.run(main()) == (True, "ok")


def test_cancelling_the_worker_cancels_waiting_operations() -> None:
    async def main() -> tuple[bool, bool]:
        queue: RequestQueue[None] = RequestQueue()
        gate = asyncio.Event()

        async def blocker() -> None:
            await gate.wait()

        async def noop() -> None:
            return None

        first = queue.dispatch(blocker)
        second = queue.dispatch(noop)
        await asyncio.sleep(0)
        queue._worker.cancel()
        await asyncio.gather(first, second, return_exceptions=True)
        return first.cancelled(), second.cancelled()

    assert asyncio.run(main()) == (True, True)
