"""
Fixed-interval timer that feeds the coordinator.

Ticks fire on schedule regardless of how long a cycle takes. Each tick is
spawned as its own task, so a tick that lands while a cycle is still running
is dropped by the coordinator instead of piling up behind it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from recipe_feed.state import FeedCoordinator, TriggerSource, TriggerStatus

logger = logging.getLogger(__name__)


async def _tick(coordinator: FeedCoordinator) -> None:
    outcome = await coordinator.trigger(TriggerSource.TIMER)
    if outcome.status is TriggerStatus.RAN and outcome.new_items:
        logger.info("Timer cycle found %d new recipes", len(outcome.new_items))


async def run_poll_loop(
    coordinator: FeedCoordinator,
    interval_seconds: float = 30.0,
    stop: Optional[asyncio.Event] = None,
) -> int:
    """
    Fire a timer trigger every ``interval_seconds`` until ``stop`` is set.

    Returns the number of ticks fired. Missed ticks (e.g. after the host was
    suspended) are not replayed; the next tick starts from the current watermark.
    """
    stop = stop or asyncio.Event()
    loop = asyncio.get_running_loop()
    pending: set[asyncio.Task] = set()
    ticks = 0
    next_tick = loop.time() + interval_seconds

    while not stop.is_set():
        try:
            await asyncio.wait_for(
                stop.wait(), timeout=max(0.0, next_tick - loop.time())
            )
            break
        except asyncio.TimeoutError:
            pass

        ticks += 1
        task = asyncio.create_task(_tick(coordinator))
        pending.add(task)
        task.add_done_callback(pending.discard)

        next_tick += interval_seconds
        now = loop.time()
        if next_tick <= now:
            next_tick = now + interval_seconds

    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    return ticks
