"""
Feed synchronizer: one polling cycle against the remote store.

A cycle reads every public recipe published after the watermark, announces
each one through the notification gateway (oldest first) and reports the
new watermark. The caller owns the watermark; a failed cycle returns nothing
so the caller keeps its value and the next cycle re-queries the same window.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from recipe_feed.errors import FeedError, SessionExpiredError, TransientStoreError
from recipe_feed.models import RecipeSummary
from recipe_feed.notifications import NotificationGateway, new_recipe_payload
from recipe_feed.store import RecipeStore

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "New public recipe!"
UNKNOWN_AUTHOR = "Someone"


@dataclass(frozen=True)
class CycleResult:
    watermark: float
    new_items: tuple[RecipeSummary, ...] = ()


def notification_body(item: RecipeSummary) -> str:
    author = (item.author_name or "").strip() or UNKNOWN_AUTHOR
    return f'{author} added "{item.title}"'


def select_new_items(
    rows: Sequence[RecipeSummary], watermark: float
) -> list[RecipeSummary]:
    """Keep public rows strictly newer than ``watermark``, oldest first, once per id."""
    seen: set[str] = set()
    fresh: list[RecipeSummary] = []
    for row in sorted(rows, key=lambda r: (r.published_at, r.id)):
        if not row.is_public or row.published_at <= watermark or row.id in seen:
            continue
        seen.add(row.id)
        fresh.append(row)
    return fresh


def advance_watermark(watermark: float, items: Sequence[RecipeSummary]) -> float:
    if not items:
        return watermark
    return max(watermark, max(item.published_at for item in items))


async def emit_notifications(
    gateway: NotificationGateway, items: Sequence[RecipeSummary]
) -> int:
    """Request one notification per item; returns how many were accepted."""
    delivered = 0
    for item in items:
        try:
            await gateway.display(
                NOTIFICATION_TITLE, notification_body(item), new_recipe_payload(item.id)
            )
            delivered += 1
        except Exception:
            logger.exception("Failed to display notification for recipe %s", item.id)
    return delivered


async def run_cycle(
    store: RecipeStore, gateway: NotificationGateway, watermark: float
) -> CycleResult:
    """
    Run one sync cycle starting from ``watermark``.

    Raises SessionExpiredError when no identity is signed in and
    TransientStoreError when the store cannot be queried.
    """
    try:
        identity = await store.get_current_identity()
    except FeedError:
        raise
    except Exception as exc:
        raise TransientStoreError() from exc
    if identity is None:
        raise SessionExpiredError()

    try:
        rows = await store.fetch_public_since(watermark)
    except FeedError:
        raise
    except Exception as exc:
        # Timeouts and transport failures from the store client.
        raise TransientStoreError() from exc

    new_items = select_new_items(rows, watermark)
    if not new_items:
        return CycleResult(watermark=watermark)

    delivered = await emit_notifications(gateway, new_items)
    logger.info(
        "Detected %d new recipes (%d notifications shown) after watermark %s",
        len(new_items),
        delivered,
        watermark,
    )
    return CycleResult(
        watermark=advance_watermark(watermark, new_items),
        new_items=tuple(new_items),
    )
