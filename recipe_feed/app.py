"""
FastAPI application entry point for the recipe feed service.

The app owns the feed state: its lifespan runs the poll loop against the same
``get_coordinator()`` singleton the routes use, so timer ticks, manual
refreshes and searches all go through one coordinator.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from recipe_feed.config import get_settings
from recipe_feed.dependencies import get_coordinator
from recipe_feed.routes import router
from recipe_feed.worker import run_poll_loop

logger = logging.getLogger(__name__)


def create_app(poll_interval_seconds: float | None = None) -> FastAPI:
    settings = get_settings()
    interval = poll_interval_seconds or settings.poll_interval_seconds

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if not settings.poll_in_app:
            yield
            return
        stop = asyncio.Event()
        poller = asyncio.create_task(run_poll_loop(get_coordinator(), interval, stop))
        logger.info("Feed poll loop started (every %ss)", interval)
        try:
            yield
        finally:
            stop.set()
            ticks = await poller
            logger.info("Feed poll loop stopped after %d ticks", ticks)

    app = FastAPI(
        title="Recipe Feed Backend (FastAPI)", version="0.1.0", lifespan=lifespan
    )
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
