"""Single-consumer aggregation of request outcomes."""

from __future__ import annotations

import asyncio

from slt._internal.logging import get_logger
from slt.metrics.models import CounterSnapshot

logger = get_logger("metrics.aggregator")


class ResultAggregator:
    """Owns the success and failure counters of a run.

    Outcome events (booleans) arrive on a single ``asyncio.Queue`` and are
    folded into the counters by :meth:`run`, one at a time. Nothing else
    mutates the counters; readers take a :meth:`snapshot`.

    Because the counters are only touched from coroutines on one event
    loop, a snapshot always reflects a pair of values the aggregator
    actually held at the same instant.
    """

    def __init__(self, outcomes: asyncio.Queue[bool]) -> None:
        """Initialize the aggregator.

        Args:
            outcomes: Channel carrying one boolean per completed request.
        """
        self._outcomes = outcomes
        self._success = 0
        self._failure = 0

    def record(self, ok: bool) -> None:
        """Count a single outcome."""
        if ok:
            self._success += 1
        else:
            self._failure += 1

    def snapshot(self) -> CounterSnapshot:
        """Return the current counters."""
        return CounterSnapshot(success=self._success, failure=self._failure)

    async def run(self) -> None:
        """Consume outcome events until cancelled."""
        while True:
            ok = await self._outcomes.get()
            self.record(ok)
            self._outcomes.task_done()

    def drain(self) -> int:
        """Count every event still waiting in the channel.

        Used after the producers have stopped so that no emitted outcome is
        left uncounted.

        Returns:
            Number of events consumed.
        """
        drained = 0
        while True:
            try:
                ok = self._outcomes.get_nowait()
            except asyncio.QueueEmpty:
                break
            self.record(ok)
            self._outcomes.task_done()
            drained += 1
        if drained:
            logger.debug("Drained %d pending outcomes", drained)
        return drained
