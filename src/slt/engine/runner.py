"""Top-level load test orchestrator."""

from __future__ import annotations

import asyncio
import contextlib
import math
import signal
import sys
import time
from typing import TYPE_CHECKING

from slt._internal.errors import EngineError, SltError
from slt._internal.logging import get_logger, setup_logging
from slt.engine.dispatch import send_batch
from slt.engine.http import LoadClient, RequestTemplate
from slt.engine.pool import DispatchPool
from slt.engine.reporter import ProgressReporter
from slt.engine.scheduler import RateScheduler
from slt.metrics.aggregator import ResultAggregator
from slt.metrics.models import RunSummary

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from slt._internal.config import RunConfig
    from slt.engine.scheduler import TickPlan
    from slt.metrics.models import CounterSnapshot

logger = get_logger("engine.runner")


def _install_uvloop() -> None:
    """Install uvloop as the default event loop policy if available.

    Falls back silently to the default asyncio event loop on Windows
    or if uvloop is not installed.
    """
    if sys.platform == "win32":
        return

    try:
        import uvloop

        uvloop.install()
        logger.debug("uvloop installed as event loop policy")
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")


def default_in_flight_capacity(config: RunConfig, batch_sizes: Sequence[int]) -> int:
    """Return the dispatch pool capacity used when none is configured.

    A batch sends its requests one after another, so it may run for up to
    its size times the request timeout. The cap admits every batch of the
    ticks that can fire in that time, plus the current tick.
    """
    longest_batch = max(batch_sizes, default=0) * config.timeout_seconds
    outstanding_ticks = math.ceil(longest_batch / config.tick_interval) + 1
    return max(1, len(batch_sizes) * outstanding_ticks)


class LoadTestRunner:
    """Runs one load test against a single URL.

    Wires together the rate scheduler, the bounded dispatch pool, the
    result aggregator and the progress reporter, all on one event loop and
    sharing one HTTP client. :meth:`run` returns only when the configured
    duration elapses; the first transport error aborts the run by raising
    :class:`FatalTransportError`.

    Attributes:
        config: The immutable run configuration.
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        on_report: Callable[[CounterSnapshot], None] | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Validated run configuration.
            on_report: Optional sink for periodic counter snapshots.
                Defaults to logging them.
        """
        self.config = config
        self._on_report = on_report
        self.scheduler = RateScheduler(
            rate=config.requests_per_second,
            cap=config.max_requests_per_worker,
            tick_interval=config.tick_interval,
            mode=config.partition,
        )
        capacity = config.max_in_flight_batches or default_in_flight_capacity(
            config, self.scheduler.batch_sizes
        )
        self.pool = DispatchPool(capacity, on_error=self._batch_failed)
        self._aggregator: ResultAggregator | None = None
        self._fatal: asyncio.Queue[SltError] | None = None

    def _batch_failed(self, task: asyncio.Task[object], exc: BaseException) -> None:
        error = EngineError(f"{task.get_name()} failed: {exc!r}")
        error.__cause__ = exc
        if self._fatal is not None:
            self._fatal.put_nowait(error)

    def snapshot(self) -> CounterSnapshot | None:
        """Return the current counters, or None before the run starts."""
        if self._aggregator is None:
            return None
        return self._aggregator.snapshot()

    async def run(self) -> RunSummary:
        """Execute the load test.

        Without a configured duration this only returns by raising.

        Returns:
            Final counters once ``duration_seconds`` has elapsed.

        Raises:
            FatalTransportError: On the first request that got no response.
            EngineError: If a batch or background task fails unexpectedly.
            asyncio.CancelledError: On SIGTERM or external cancellation, after
                the last counts are logged.
        """
        config = self.config
        template = RequestTemplate.from_config(config)
        outcomes: asyncio.Queue[bool] = asyncio.Queue(maxsize=config.outcome_queue_size)
        fatal: asyncio.Queue[SltError] = asyncio.Queue()
        self._fatal = fatal

        aggregator = ResultAggregator(outcomes)
        self._aggregator = aggregator
        reporter = ProgressReporter(aggregator, config.report_interval, self._on_report)

        logger.info("Starting load test to %s", config.url)
        logger.info("Sending %d requests per second", config.requests_per_second)

        start_time = time.monotonic()
        async with LoadClient(config.timeout_seconds) as client:

            def _dispatch(plan: TickPlan) -> None:
                for i, n in enumerate(plan.batch_sizes):
                    self.pool.spawn(
                        lambda n=n: send_batch(n, client, template, config.ok_codes, outcomes, fatal),
                        name=f"tick-{plan.tick}-worker-{i}",
                    )

            aggregator_task = asyncio.create_task(aggregator.run(), name="aggregator")
            reporter_task = asyncio.create_task(reporter.run(), name="reporter")
            scheduler_task = asyncio.create_task(self.scheduler.run(_dispatch), name="scheduler")
            fatal_task = asyncio.create_task(fatal.get(), name="fatal")
            background = {aggregator_task, reporter_task, scheduler_task}
            stop_signals = _install_stop_handlers()

            try:
                done, _pending = await asyncio.wait(
                    {fatal_task, *background},
                    timeout=config.duration_seconds,
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if fatal_task in done:
                    await self._abort(scheduler_task)
                    reporter.report()
                    error = fatal_task.result()
                    logger.error("Load test aborted: %s", error)
                    raise error

                for task in done:
                    exc = task.exception()
                    msg = f"{task.get_name()} stopped unexpectedly"
                    raise EngineError(msg) from exc

                # Duration elapsed: stop ticking and let in-flight batches finish
                await _cancel(scheduler_task)
                if not await self.pool.drain(timeout=config.timeout_seconds + config.tick_interval):
                    logger.warning("Cancelling %d batches still in flight", self.pool.in_flight)
                    await self.pool.cancel_all()

                # A batch may have failed while draining
                await _cancel(fatal_task)
                late_error: SltError | None = None
                if fatal_task.done() and not fatal_task.cancelled():
                    late_error = fatal_task.result()
                elif not fatal.empty():
                    late_error = fatal.get_nowait()
                if late_error is not None:
                    logger.error("Load test aborted: %s", late_error)
                    raise late_error

                await _cancel(aggregator_task)
                aggregator.drain()
                reporter.report()
            except asyncio.CancelledError:
                # External termination: leave the last counts in the log
                reporter.report()
                raise
            finally:
                _remove_stop_handlers(stop_signals)
                await self.pool.cancel_all()
                for task in (fatal_task, *background):
                    await _cancel(task)

        counters = aggregator.snapshot()
        summary = RunSummary(
            url=config.url,
            requests_per_second=config.requests_per_second,
            success=counters.success,
            failure=counters.failure,
            ticks=self.scheduler.ticks,
            dropped_batches=self.pool.dropped_batches,
            duration_seconds=time.monotonic() - start_time,
        )
        logger.info(
            "Load test completed: duration=%.1fs, ticks=%d, total_requests=%d, "
            "ok=%d, failures=%d, dropped_batches=%d",
            summary.duration_seconds,
            summary.ticks,
            summary.total,
            summary.success,
            summary.failure,
            summary.dropped_batches,
        )
        return summary

    async def _abort(self, scheduler_task: asyncio.Task[None]) -> None:
        """Stop scheduling and cancel every in-flight batch."""
        await _cancel(scheduler_task)
        await self.pool.cancel_all()


def _install_stop_handlers() -> tuple[int, ...]:
    """Cancel the current task on SIGTERM so the run unwinds with its counts logged.

    Returns:
        The signals a handler was installed for.
    """
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    if task is None:
        return ()

    def _on_signal(signum: int) -> None:
        logger.info("Signal %d received, stopping load test", signum)
        task.cancel()

    try:
        loop.add_signal_handler(signal.SIGTERM, _on_signal, signal.SIGTERM)
    except (NotImplementedError, RuntimeError):
        # Windows event loops and loops outside the main thread
        logger.debug("SIGTERM handler not installed")
        return ()
    return (signal.SIGTERM,)


def _remove_stop_handlers(signals: tuple[int, ...]) -> None:
    loop = asyncio.get_running_loop()
    for signum in signals:
        loop.remove_signal_handler(signum)


async def _cancel(task: asyncio.Task[object]) -> None:
    """Cancel a task and wait for it to unwind."""
    if task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


def run_load_test(
    config: RunConfig,
    *,
    log_level: int = 20,
    json_logs: bool = False,
    on_report: Callable[[CounterSnapshot], None] | None = None,
) -> RunSummary:
    """Run a load test in the current process, blocking until it ends.

    Installs uvloop, sets up logging and drives :class:`LoadTestRunner`
    on a fresh event loop.

    Args:
        config: Validated run configuration.
        log_level: Logging level (default: logging.INFO = 20).
        json_logs: Emit structured JSON logs.
        on_report: Optional sink for periodic counter snapshots.

    Returns:
        RunSummary once the configured duration has elapsed.

    Raises:
        FatalTransportError: On the first request that got no response.
        EngineError: If the engine fails unexpectedly.
        asyncio.CancelledError: If the run was stopped by SIGTERM.
    """
    _install_uvloop()
    setup_logging(level=log_level, json_format=json_logs)
    return asyncio.run(LoadTestRunner(config, on_report=on_report).run())
