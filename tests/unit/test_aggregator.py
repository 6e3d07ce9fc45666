"""Tests for the single-consumer result aggregator."""

from __future__ import annotations

import asyncio
import random

import pytest

from slt.metrics.aggregator import ResultAggregator
from slt.metrics.models import CounterSnapshot


class TestCounterSnapshot:
    """Tests for the CounterSnapshot dataclass."""

    def test_total(self) -> None:
        assert CounterSnapshot(success=3, failure=2).total == 5

    def test_defaults_to_zero(self) -> None:
        snapshot = CounterSnapshot()
        assert snapshot.success == 0
        assert snapshot.failure == 0
        assert snapshot.total == 0


class TestResultAggregator:
    """Tests for outcome counting."""

    def test_record(self) -> None:
        aggregator = ResultAggregator(asyncio.Queue())
        aggregator.record(True)
        aggregator.record(False)
        aggregator.record(True)
        assert aggregator.snapshot() == CounterSnapshot(success=2, failure=1)

    @pytest.mark.parametrize("seed", [0, 1, 2])
    async def test_counts_every_event_exactly_once(self, seed: int) -> None:
        rng = random.Random(seed)
        events = [rng.random() < 0.7 for _ in range(500)]
        queue: asyncio.Queue[bool] = asyncio.Queue(maxsize=1)
        aggregator = ResultAggregator(queue)

        consumer = asyncio.create_task(aggregator.run())

        async def _produce(chunk: list[bool]) -> None:
            for ok in chunk:
                await queue.put(ok)

        await asyncio.gather(*(_produce(events[i::5]) for i in range(5)))
        await queue.join()
        consumer.cancel()
        with pytest.raises(asyncio.CancelledError):
            await consumer

        k = sum(events)
        assert aggregator.snapshot() == CounterSnapshot(success=k, failure=len(events) - k)

    async def test_drain_counts_pending_events(self) -> None:
        queue: asyncio.Queue[bool] = asyncio.Queue()
        for ok in (True, False, False):
            queue.put_nowait(ok)
        aggregator = ResultAggregator(queue)

        assert aggregator.drain() == 3
        assert aggregator.snapshot() == CounterSnapshot(success=1, failure=2)
        assert queue.empty()

    async def test_drain_on_empty_queue(self) -> None:
        aggregator = ResultAggregator(asyncio.Queue())
        assert aggregator.drain() == 0

    async def test_snapshot_total_matches_fields(self) -> None:
        queue: asyncio.Queue[bool] = asyncio.Queue()
        aggregator = ResultAggregator(queue)
        consumer = asyncio.create_task(aggregator.run())

        for i in range(50):
            await queue.put(i % 3 != 0)
            snapshot = aggregator.snapshot()
            assert snapshot.total == snapshot.success + snapshot.failure

        await queue.join()
        consumer.cancel()
        with pytest.raises(asyncio.CancelledError):
            await consumer
        assert aggregator.snapshot().total == 50
