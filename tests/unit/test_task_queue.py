"""Unit tests for the TaskQueue concurrency primitive."""

from __future__ import annotations

import asyncio

import pytest

from gittrends_geocoder.utils.concurrency import TaskQueue
from gittrends_geocoder.utils.errors import QueueTimeoutError


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


class TestTaskQueue:
    @pytest.mark.asyncio
    async def test_returns_result(self) -> None:
        queue = TaskQueue(concurrency=1)

        async def work() -> str:
            return "done"

        assert await queue.add(work) == "done"
        stats = queue.get_stats()
        assert stats.completed == 1
        assert stats.size == 0
        assert stats.pending == 0

    @pytest.mark.asyncio
    async def test_size_and_pending_track_waiting_and_running(self) -> None:
        queue = TaskQueue(concurrency=1, name="osm")
        gate = asyncio.Event()

        async def work() -> None:
            await gate.wait()

        tasks = [asyncio.create_task(queue.add(work)) for _ in range(3)]
        await _settle()
        assert queue.pending == 1
        assert queue.size == 2

        gate.set()
        await asyncio.gather(*tasks)
        assert queue.pending == 0
        assert queue.size == 0
        assert queue.get_stats().completed == 3

    @pytest.mark.asyncio
    async def test_concurrency_limit_is_respected(self) -> None:
        queue = TaskQueue(concurrency=2)
        running = 0
        peak = 0

        async def work() -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await asyncio.gather(*(queue.add(work) for _ in range(6)))
        assert peak == 2

    @pytest.mark.asyncio
    async def test_unbounded_queue_runs_everything_at_once(self) -> None:
        queue = TaskQueue()
        gate = asyncio.Event()

        async def work() -> None:
            await gate.wait()

        tasks = [asyncio.create_task(queue.add(work)) for _ in range(4)]
        await _settle()
        assert queue.pending == 4
        assert queue.size == 0
        gate.set()
        await asyncio.gather(*tasks)

    @pytest.mark.asyncio
    async def test_interval_cap_spaces_out_starts(self) -> None:
        queue = TaskQueue(concurrency=None, interval_cap=1, interval=0.1)
        loop = asyncio.get_running_loop()
        starts: list[float] = []

        async def work() -> None:
            starts.append(loop.time())

        await asyncio.gather(*(queue.add(work) for _ in range(3)))
        assert len(starts) == 3
        # Three starts with one per 0.1s window need at least 0.2s.
        assert starts[-1] - starts[0] >= 0.19

    @pytest.mark.asyncio
    async def test_timeout_raises_and_is_counted(self) -> None:
        queue = TaskQueue(concurrency=1, timeout=0.01, name="slow")

        async def work() -> None:
            await asyncio.sleep(1)

        with pytest.raises(QueueTimeoutError) as exc_info:
            await queue.add(work)
        assert exc_info.value.provider_name == "slow"
        stats = queue.get_stats()
        assert stats.timeouts == 1
        assert stats.pending == 0

    @pytest.mark.asyncio
    async def test_exceptions_propagate_and_are_counted(self) -> None:
        queue = TaskQueue(concurrency=1)

        async def work() -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await queue.add(work)
        assert queue.get_stats().failed == 1
        # The slot was released.
        assert queue.pending == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_leaves_the_queue(self) -> None:
        queue = TaskQueue(concurrency=1)
        gate = asyncio.Event()
        started: list[int] = []

        async def work(n: int) -> None:
            started.append(n)
            await gate.wait()

        first = asyncio.create_task(queue.add(lambda: work(1)))
        second = asyncio.create_task(queue.add(lambda: work(2)))
        await _settle()
        assert queue.size == 1

        second.cancel()
        await _settle()
        assert queue.size == 0

        gate.set()
        await first
        assert started == [1]

    @pytest.mark.parametrize(
        "kwargs",
        [{"concurrency": 0}, {"interval_cap": 0}, {"interval": 0}],
    )
    def test_invalid_parameters(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            TaskQueue(**kwargs)
