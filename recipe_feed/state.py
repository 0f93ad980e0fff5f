"""
Sync state, the unseen-items indicator and the single-flight coordinator.

``SyncState`` is immutable; ``apply_cycle`` and ``acknowledge_state`` are the
only transitions. ``FeedCoordinator`` is the single owner of the current
state: every trigger source (timer, manual refresh, search) goes through
``FeedCoordinator.trigger`` so at most one cycle is in flight at a time.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from recipe_feed.errors import SessionExpiredError, TransientStoreError
from recipe_feed.models import RecipeSummary
from recipe_feed.notifications import NotificationGateway
from recipe_feed.store import RecipeStore
from recipe_feed.sync import CycleResult, run_cycle

logger = logging.getLogger(__name__)


class TriggerSource(str, enum.Enum):
    TIMER = "timer"
    MANUAL_REFRESH = "manual_refresh"
    SEARCH = "search"


class TriggerStatus(str, enum.Enum):
    RAN = "ran"
    DROPPED = "dropped"
    COALESCED = "coalesced"
    FAILED = "failed"
    SESSION_EXPIRED = "session_expired"


@dataclass(frozen=True)
class SyncIndicator:
    has_unseen: bool = False
    recipe_ids: frozenset[str] = frozenset()

    def as_dict(self) -> dict:
        return {"has_unseen": self.has_unseen, "recipe_ids": sorted(self.recipe_ids)}


@dataclass(frozen=True)
class SyncState:
    watermark: float
    indicator: SyncIndicator = field(default_factory=SyncIndicator)


def apply_cycle(state: SyncState, result: CycleResult) -> SyncState:
    """Fold a successful cycle into the state; an empty cycle never clears the indicator."""
    watermark = max(state.watermark, result.watermark)
    if not result.new_items:
        return replace(state, watermark=watermark)
    indicator = SyncIndicator(
        has_unseen=True,
        recipe_ids=state.indicator.recipe_ids
        | frozenset(item.id for item in result.new_items),
    )
    return SyncState(watermark=watermark, indicator=indicator)


def acknowledge_state(state: SyncState) -> SyncState:
    return replace(state, indicator=SyncIndicator())


@dataclass(frozen=True)
class TriggerOutcome:
    source: TriggerSource
    status: TriggerStatus
    watermark: float
    new_items: tuple[RecipeSummary, ...] = ()
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "source": self.source.value,
            "status": self.status.value,
            "watermark": self.watermark,
            "new_items": [item.as_dict() for item in self.new_items],
            "error": self.error,
        }


@dataclass(frozen=True)
class FeedSnapshot:
    """What the presentation layer renders."""

    items: tuple[RecipeSummary, ...]
    indicator: SyncIndicator
    watermark: float
    search_term: str
    in_flight: bool

    def as_dict(self) -> dict:
        return {
            "items": [item.as_dict() for item in self.items],
            "indicator": self.indicator.as_dict(),
            "watermark": self.watermark,
            "search_term": self.search_term,
            "in_flight": self.in_flight,
        }


class FeedCoordinator:
    """Owns the watermark, the indicator and the visible list."""

    def __init__(
        self,
        store: RecipeStore,
        gateway: NotificationGateway,
        *,
        watermark: float | None = None,
        clock: Callable[[], float] = time.time,
        list_limit: int = 100,
    ):
        self.store = store
        self.gateway = gateway
        self.list_limit = list_limit
        # Recipes published before the client started are never announced.
        self._state = SyncState(watermark=clock() if watermark is None else watermark)
        self._inflight: Optional[asyncio.Task] = None
        self._items: tuple[RecipeSummary, ...] = ()
        self._items_term: Optional[str] = None
        self._search_term = ""
        self._reloads_started = 0
        self._reload_applied = 0
        self.cycles_started = 0

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    def snapshot(self) -> FeedSnapshot:
        return FeedSnapshot(
            items=self._items,
            indicator=self._state.indicator,
            watermark=self._state.watermark,
            search_term=self._search_term,
            in_flight=self.in_flight,
        )

    def acknowledge(self) -> SyncIndicator:
        """Called when the refreshed list has been shown to the user."""
        self._state = acknowledge_state(self._state)
        return self._state.indicator

    async def trigger(
        self, source: TriggerSource | str, search_term: str | None = None
    ) -> TriggerOutcome:
        source = TriggerSource(source)
        if source is TriggerSource.SEARCH:
            self._search_term = (search_term or "").strip()

        running = self._inflight
        if running is not None:
            if source is TriggerSource.TIMER:
                logger.debug("Sync cycle in flight; dropping timer tick")
                return TriggerOutcome(
                    source, TriggerStatus.DROPPED, self._state.watermark
                )
            await asyncio.wait([running])
            if (
                source is TriggerSource.MANUAL_REFRESH
                or self._items_term != self._search_term
            ):
                await self._reload_items()
            return TriggerOutcome(source, TriggerStatus.COALESCED, self._state.watermark)

        # No suspension between the check above and claiming the guard.
        task = asyncio.ensure_future(self._run_guarded(source))
        self._inflight = task
        # The cycle runs to completion even if the caller goes away.
        return await asyncio.shield(task)

    async def _run_guarded(self, source: TriggerSource) -> TriggerOutcome:
        self.cycles_started += 1
        try:
            try:
                result = await run_cycle(self.store, self.gateway, self._state.watermark)
            except SessionExpiredError as exc:
                logger.warning("Sync cycle skipped: %s", exc)
                return TriggerOutcome(
                    source,
                    TriggerStatus.SESSION_EXPIRED,
                    self._state.watermark,
                    error=str(exc),
                )
            except TransientStoreError as exc:
                logger.info("Sync cycle failed, will retry on next trigger: %s", exc)
                return TriggerOutcome(
                    source, TriggerStatus.FAILED, self._state.watermark, error=str(exc)
                )
            except Exception as exc:
                logger.exception("Sync cycle failed unexpectedly")
                return TriggerOutcome(
                    source, TriggerStatus.FAILED, self._state.watermark, error=str(exc)
                )

            self._state = apply_cycle(self._state, result)
            if source is not TriggerSource.TIMER or result.new_items:
                await self._reload_items()
            return TriggerOutcome(
                source, TriggerStatus.RAN, self._state.watermark, result.new_items
            )
        finally:
            self._inflight = None

    async def _reload_items(self) -> None:
        term = self._search_term
        self._reloads_started += 1
        generation = self._reloads_started
        try:
            items = await self.store.list_public(term or None, limit=self.list_limit)
        except Exception:
            logger.exception("Failed to reload recipe list (search=%r)", term)
            return
        # A reload that finishes after a newer one, or for a replaced term, is stale.
        if generation < self._reload_applied or term != self._search_term:
            logger.debug("Discarding stale recipe list (search=%r)", term)
            return
        self._reload_applied = generation
        self._items = tuple(items)
        self._items_term = term
