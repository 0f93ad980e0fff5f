"""
Daemon that polls for newly published public recipes and routes tapped notifications.

The feed must have a single poller. Run the daemon headless with the API's
poller disabled (POLL_IN_APP=false), or next to the API with --responses-only.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from recipe_feed.config import get_settings
from recipe_feed.dependencies import get_coordinator, get_response_queue
from recipe_feed.navigation import NavigationTarget, run_response_loop
from recipe_feed.state import TriggerSource
from recipe_feed.worker import run_poll_loop

logger = logging.getLogger(__name__)


def _log_navigation(target: NavigationTarget) -> None:
    logger.info("Navigation intent: %s", target.path)


async def _run(interval: float, once: bool, responses_only: bool) -> int:
    coordinator = get_coordinator()
    if once:
        outcome = await coordinator.trigger(TriggerSource.MANUAL_REFRESH)
        logger.info(
            "Cycle %s: %d new recipes, watermark %s",
            outcome.status.value,
            len(outcome.new_items),
            outcome.watermark,
        )
        return 0

    stop = asyncio.Event()
    loops = [run_response_loop(get_response_queue(), _log_navigation, stop)]
    if not responses_only:
        loops.append(run_poll_loop(coordinator, interval, stop))
    await asyncio.gather(*loops)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Recipe feed daemon")
    parser.add_argument(
        "--interval-seconds",
        type=float,
        default=None,
        help="Seconds between polling cycles (defaults to POLL_INTERVAL_SECONDS)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit",
    )
    parser.add_argument(
        "--responses-only",
        action="store_true",
        help="Only route tapped notifications; use when the API process polls the feed",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    settings = get_settings()
    interval = args.interval_seconds or settings.poll_interval_seconds
    try:
        return asyncio.run(_run(interval, args.once, args.responses_only))
    except KeyboardInterrupt:
        logger.info("Stopped")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
