"""Dispatch workers: issue a batch of sequential requests and report outcomes."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from slt._internal.errors import FatalTransportError, SltError
from slt._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Container

    from slt.engine.http import LoadClient, RequestTemplate

logger = get_logger("engine.dispatch")


def classify(status_code: int, ok_codes: Container[int]) -> bool:
    """Return True when ``status_code`` is in the OK set."""
    return status_code in ok_codes


async def send_request(
    client: LoadClient,
    template: RequestTemplate,
    ok_codes: Container[int],
    outcomes: asyncio.Queue[bool],
) -> bool:
    """Send one request and put its classification on ``outcomes``.

    Args:
        client: Shared HTTP client.
        template: Shared request template.
        ok_codes: Status codes counted as success.
        outcomes: Outcome channel consumed by the aggregator.

    Returns:
        The outcome that was emitted.

    Raises:
        FatalTransportError: If no response was received. Nothing is put on
            ``outcomes`` in that case.
    """
    status = await client.send(template)
    ok = classify(status, ok_codes)
    await outcomes.put(ok)
    if not ok:
        logger.debug("Request failed with code %d", status)
    return ok


async def send_batch(
    n: int,
    client: LoadClient,
    template: RequestTemplate,
    ok_codes: Container[int],
    outcomes: asyncio.Queue[bool],
    fatal: asyncio.Queue[SltError],
) -> int:
    """Send ``n`` sequential requests, stopping at the first transport error.

    Each completed exchange produces one outcome event. A transport error
    is put on ``fatal`` and the rest of the batch is abandoned.

    Args:
        n: Number of requests in the batch.
        client: Shared HTTP client.
        template: Shared request template.
        ok_codes: Status codes counted as success.
        outcomes: Outcome channel.
        fatal: Fatal error channel.

    Returns:
        Number of requests that completed with a response.
    """
    logger.debug("Sending %d requests in worker", n)
    completed = 0
    for _ in range(n):
        try:
            await send_request(client, template, ok_codes, outcomes)
        except FatalTransportError as exc:
            fatal.put_nowait(exc)
            logger.debug("Aborting batch after %d/%d requests: %s", completed, n, exc)
            break
        completed += 1
    return completed
