"""Rate scheduler that splits a per-second rate into worker batches."""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from slt._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from slt._internal.types import PartitionMode

logger = get_logger("engine.scheduler")


def reference_partition(rate: int, cap: int) -> tuple[int, ...]:
    """Split ``rate`` into batches using the historical slt formula.

    Uses ``rate // cap + 1`` workers. Worker ``i`` gets
    ``min(cap, rate % ((i + 1) * cap))`` requests. The result only
    approximates ``rate``: when ``rate`` is a multiple of ``cap`` the
    leading batches are empty, and for other inputs the sum can overshoot.
    Every batch is at most ``cap``.

    Args:
        rate: Target requests per second (>= 0).
        cap: Maximum requests per worker (> 0).

    Returns:
        Batch sizes, one per worker.
    """
    workers = rate // cap + 1
    return tuple(min(cap, rate % ((i + 1) * cap)) for i in range(workers))


def even_partition(rate: int, cap: int) -> tuple[int, ...]:
    """Split ``rate`` exactly across ``ceil(rate / cap)`` workers.

    The remainder is spread one request at a time over the first workers,
    so batch sizes differ by at most one and sum to ``rate``.

    Args:
        rate: Target requests per second (>= 0).
        cap: Maximum requests per worker (> 0).

    Returns:
        Batch sizes, one per worker. Empty when ``rate`` is 0.
    """
    workers = math.ceil(rate / cap)
    if workers == 0:
        return ()
    base, extra = divmod(rate, workers)
    return tuple(base + 1 if i < extra else base for i in range(workers))


def partition(rate: int, cap: int, mode: PartitionMode = "reference") -> tuple[int, ...]:
    """Dispatch to the partition strategy named by ``mode``.

    Raises:
        ValueError: If ``cap`` is not positive, ``rate`` is negative or
            ``mode`` is unknown.
    """
    if cap <= 0:
        msg = f"cap must be positive, got {cap}"
        raise ValueError(msg)
    if rate < 0:
        msg = f"rate must be >= 0, got {rate}"
        raise ValueError(msg)
    if mode == "reference":
        return reference_partition(rate, cap)
    if mode == "even":
        return even_partition(rate, cap)
    msg = f"unknown partition mode: {mode!r}"
    raise ValueError(msg)


@dataclass(frozen=True)
class TickPlan:
    """The batches to dispatch on one scheduler tick.

    Attributes:
        tick: 1-based tick number.
        elapsed_seconds: Time offset from scheduler start.
        batch_sizes: Requests assigned to each worker for this tick.
    """

    tick: int
    elapsed_seconds: float
    batch_sizes: tuple[int, ...]

    @property
    def total_requests(self) -> int:
        """Return the number of requests planned for this tick."""
        return sum(self.batch_sizes)


class RateScheduler:
    """Fires a tick every ``tick_interval`` and hands out batch plans.

    The batch split is computed once, since rate and cap are fixed for the
    run. The first tick fires one interval after :meth:`run` starts. Ticks
    are aligned to the start time, so a slow callback does not make later
    ticks drift.

    Args:
        rate: Target requests per second.
        cap: Maximum requests per worker.
        tick_interval: Seconds between ticks.
        mode: Partition strategy.
    """

    def __init__(
        self,
        rate: int,
        cap: int,
        tick_interval: float = 1.0,
        mode: PartitionMode = "reference",
    ) -> None:
        self._rate = rate
        self._cap = cap
        self._tick_interval = tick_interval
        self._batch_sizes = partition(rate, cap, mode)
        self._ticks = 0

    @property
    def batch_sizes(self) -> tuple[int, ...]:
        """Return the per-tick batch split."""
        return self._batch_sizes

    @property
    def workers_per_tick(self) -> int:
        """Return the number of workers spawned on each tick."""
        return len(self._batch_sizes)

    @property
    def ticks(self) -> int:
        """Return the number of ticks fired so far."""
        return self._ticks

    def plan(self, tick: int) -> TickPlan:
        """Return the batch plan for a given tick number."""
        return TickPlan(
            tick=tick,
            elapsed_seconds=tick * self._tick_interval,
            batch_sizes=self._batch_sizes,
        )

    async def run(self, on_tick: Callable[[TickPlan], Awaitable[None] | None]) -> None:
        """Invoke ``on_tick`` once per tick until cancelled.

        Args:
            on_tick: Callback receiving each TickPlan. May be a coroutine
                function.
        """
        logger.debug(
            "Using %d workers, with maximum %d requests per worker (maximum %d per second)",
            self.workers_per_tick,
            self._cap,
            self.workers_per_tick * self._cap,
        )
        start_time = time.monotonic()
        while True:
            target_time = start_time + (self._ticks + 1) * self._tick_interval
            delay = target_time - time.monotonic()
            if delay > 0:
                await asyncio.sleep(delay)

            self._ticks += 1
            result = on_tick(self.plan(self._ticks))
            if result is not None:
                await result
