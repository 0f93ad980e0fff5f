"""
Routing of tapped notifications to navigation targets.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from recipe_feed.notifications import NEW_RECIPE_EVENT, ResponseQueue

logger = logging.getLogger(__name__)

Navigator = Callable[["NavigationTarget"], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class NavigationTarget:
    recipe_id: str

    @property
    def path(self) -> str:
        return f"/recipes/{self.recipe_id}"

    def as_dict(self) -> dict:
        return {"recipe_id": self.recipe_id, "path": self.path}


def route(payload: Any) -> Optional[NavigationTarget]:
    """
    Map a notification payload to the recipe detail view.

    Returns None for anything that is not a well-formed "new recipe" event.
    Never raises and never mutates ``payload``.
    """
    if not isinstance(payload, Mapping):
        return None
    if payload.get("type") != NEW_RECIPE_EVENT:
        return None
    recipe_id = payload.get("recipeId")
    if not isinstance(recipe_id, str) or not recipe_id.strip():
        return None
    return NavigationTarget(recipe_id=recipe_id.strip())


async def handle_response(
    payload: Any, navigate: Navigator
) -> Optional[NavigationTarget]:
    target = route(payload)
    if target is None:
        logger.debug("Ignoring notification response: %r", payload)
        return None
    try:
        result = navigate(target)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("Navigation to %s failed", target.path)
    return target


async def run_response_loop(
    queue: ResponseQueue,
    navigate: Navigator,
    stop: asyncio.Event,
    *,
    block_timeout: int = 1,
    idle_sleep: float = 0.5,
) -> int:
    """
    Consume tapped-notification payloads until ``stop`` is set.

    Each payload is routed exactly once; returns how many produced a target.
    """
    routed = 0
    while not stop.is_set():
        payload = await asyncio.to_thread(
            queue.receive, block=True, timeout=block_timeout
        )
        if payload is None:
            await asyncio.sleep(idle_sleep)
            continue
        if await handle_response(payload, navigate) is not None:
            routed += 1
    return routed
