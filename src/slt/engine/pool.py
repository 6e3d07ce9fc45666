"""Bounded pool of in-flight dispatch batches."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from slt._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

logger = get_logger("engine.pool")


class DispatchPool:
    """Tracks running batch tasks and refuses new ones beyond ``capacity``.

    When responses are slower than the tick period, batches from several
    ticks overlap. Instead of letting them pile up without bound, the pool
    drops any batch that would exceed its capacity and counts it in
    :attr:`dropped_batches`.

    Attributes:
        capacity: Maximum number of concurrently running batches.
    """

    def __init__(
        self,
        capacity: int,
        *,
        on_error: Callable[[asyncio.Task[object], BaseException], None] | None = None,
    ) -> None:
        """Initialize the pool.

        Args:
            capacity: Maximum in-flight batches. Must be positive.
            on_error: Called with the task and its exception when a batch
                ends with an error other than cancellation.

        Raises:
            ValueError: If capacity is not positive.
        """
        if capacity < 1:
            msg = f"capacity must be positive, got {capacity}"
            raise ValueError(msg)
        self.capacity = capacity
        self._on_error = on_error
        self._tasks: set[asyncio.Task[object]] = set()
        self._spawned = 0
        self._dropped = 0

    @property
    def in_flight(self) -> int:
        """Return the number of batches currently running."""
        return len(self._tasks)

    @property
    def spawned_batches(self) -> int:
        """Return the number of batches started so far."""
        return self._spawned

    @property
    def dropped_batches(self) -> int:
        """Return the number of batches refused because the pool was full."""
        return self._dropped

    def spawn(
        self,
        factory: Callable[[], Coroutine[object, object, object]],
        *,
        name: str | None = None,
    ) -> bool:
        """Start a batch if there is room for it.

        The coroutine is only created once the batch is admitted, so a
        dropped batch leaves no un-awaited coroutine behind.

        Args:
            factory: Zero-argument callable returning the batch coroutine.
            name: Optional task name.

        Returns:
            True if the batch was started, False if it was dropped.
        """
        if len(self._tasks) >= self.capacity:
            self._dropped += 1
            logger.warning(
                "Dispatch pool full (%d in flight), dropping batch %s",
                len(self._tasks),
                name or "",
            )
            return False

        task = asyncio.create_task(factory(), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        self._spawned += 1
        return True

    def _on_done(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error("Batch %s failed: %r", task.get_name(), exc)
        if self._on_error is not None:
            self._on_error(task, exc)

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for in-flight batches to finish.

        Args:
            timeout: Maximum seconds to wait. None waits indefinitely.

        Returns:
            True if every batch finished, False if the timeout expired.
        """
        if not self._tasks:
            return True
        _done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        return not pending

    async def cancel_all(self) -> None:
        """Cancel every in-flight batch and wait for them to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("Cancelled %d in-flight batches", len(tasks))
