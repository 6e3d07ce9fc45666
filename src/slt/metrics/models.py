"""Counter and summary dataclasses for slt."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "CounterSnapshot",
    "RunSummary",
]


@dataclass(frozen=True)
class CounterSnapshot:
    """Point-in-time copy of the outcome counters.

    Attributes:
        success: Responses whose status code was in the OK set.
        failure: Responses whose status code was not in the OK set.
    """

    success: int = 0
    failure: int = 0

    @property
    def total(self) -> int:
        """Return the number of completed requests."""
        return self.success + self.failure


@dataclass(frozen=True)
class RunSummary:
    """Outcome of a load test that reached its duration limit.

    Attributes:
        url: Target URL.
        requests_per_second: Configured target rate.
        success: Final success count.
        failure: Final failure count.
        ticks: Number of scheduler ticks fired.
        dropped_batches: Batches skipped because the dispatch pool was full.
        duration_seconds: Wall-clock length of the run.
    """

    url: str
    requests_per_second: int
    success: int
    failure: int
    ticks: int
    dropped_batches: int
    duration_seconds: float

    @property
    def total(self) -> int:
        """Return the number of completed requests."""
        return self.success + self.failure

    @property
    def achieved_rps(self) -> float:
        """Return completed requests per second of wall time."""
        if self.duration_seconds <= 0:
            return 0.0
        return self.total / self.duration_seconds
