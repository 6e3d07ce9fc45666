"""Periodic progress reporting of the outcome counters."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from slt._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from slt.metrics.aggregator import ResultAggregator
    from slt.metrics.models import CounterSnapshot

logger = get_logger("engine.reporter")


def log_progress(snapshot: CounterSnapshot) -> None:
    """Default report sink: one INFO line per interval."""
    logger.info(
        "Sent %d requests, %d ok, %d failures",
        snapshot.total,
        snapshot.success,
        snapshot.failure,
    )


class ProgressReporter:
    """Reports a counter snapshot every ``interval`` seconds.

    The first report is emitted immediately, then one per interval. The
    reporter only reads the aggregator's snapshot and never blocks it.

    Args:
        aggregator: Source of counter snapshots.
        interval: Seconds between reports.
        on_report: Sink for each snapshot. Defaults to :func:`log_progress`.
    """

    def __init__(
        self,
        aggregator: ResultAggregator,
        interval: float = 5.0,
        on_report: Callable[[CounterSnapshot], None] | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._interval = interval
        self._on_report = on_report or log_progress
        self._reports = 0

    @property
    def reports(self) -> int:
        """Return how many reports have been emitted."""
        return self._reports

    def report(self) -> CounterSnapshot:
        """Emit one report now and return the snapshot used."""
        snapshot = self._aggregator.snapshot()
        self._on_report(snapshot)
        self._reports += 1
        return snapshot

    async def run(self) -> None:
        """Report forever until cancelled."""
        while True:
            self.report()
            await asyncio.sleep(self._interval)
